"""Endpoint modules grouped by area."""
