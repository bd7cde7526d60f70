"""Persistence for action logs and sender markers."""

from mailpurge.storage.action_log import JsonActionLogStore, LocalActionLog
from mailpurge.storage.sender_registry import JsonSenderRegistry

__all__ = ["JsonActionLogStore", "LocalActionLog", "JsonSenderRegistry"]
