"""Server actions guarded by the mutation checkpoint."""

from passkey_starter.actions.user_actions import delete_account, get_user_stats, update_profile

__all__ = ["delete_account", "get_user_stats", "update_profile"]
