"""
ntfy IM Bridge Port

Connects a chat platform (Discord) to ntfy topics.

Architecture:
- Inbound: chat mention -> command -> publish / subscribe / unsubscribe
- Outbound: one stream per subscribed topic -> router -> chat channels

Usage:
    @ntfybot subscribe mytopic
    @ntfybot publish mytopic "hello world" --title=Hi
    @ntfybot unsubscribe mytopic
"""

from .bridge import NtfyBridge, create_adapter
from .commands import CommandType, ParsedCommand, parse_command

__all__ = ["NtfyBridge", "create_adapter", "CommandType", "ParsedCommand", "parse_command"]
