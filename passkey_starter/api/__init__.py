"""HTTP routers and shared API utilities."""
