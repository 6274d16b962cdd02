"""
IM Platform Adapters

Each adapter handles platform-specific communication:
- Discord: Gateway (discord.py)
- Memory: in-process, for `mem` tokens and tests
"""

from .base import ChatAdapterError, IMAdapter
from .discord import DiscordAdapter
from .memory import MemoryAdapter

__all__ = ["ChatAdapterError", "IMAdapter", "DiscordAdapter", "MemoryAdapter"]
