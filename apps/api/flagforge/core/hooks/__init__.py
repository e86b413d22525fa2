"""
Hook system for change notifications.

Lets independent listeners (webhook dispatch, cache maintenance) react to
feature changes without the feature service knowing about them.
"""

from .manager import FEATURE_UPDATED, HookManager, HookResult, hooks

__all__ = [
    "FEATURE_UPDATED",
    "HookManager",
    "HookResult",
    "hooks",
]
