"""
IM command parser for the ntfy bridge.

A command is a chat message addressed to the bot (first token is the bot
mention), tokenized shell-style so quoted arguments stay together:

    @bot publish mytopic "hello world" --title=Hi --tags=warning,skull
    @bot subscribe mytopic --server=https://ntfy.example.com
    @bot unsubscribe mytopic
    @bot help

Options may appear anywhere after the command name; `--` ends option
parsing. Both `--name=value` and `--name value` are accepted.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from ...util.text import topic_url


class CommandType(str, Enum):
    PUBLISH = "publish"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    HELP = "help"

    # Not a known command
    UNKNOWN = "unknown"


class CommandError(ValueError):
    """A command line could not be parsed; the message is shown to the user."""


@dataclass
class ParsedCommand:
    """Result of parsing one command line."""

    type: CommandType
    name: str  # command token as typed
    topic: str = ""  # fully qualified topic URL
    message: str = ""
    title: str = ""
    priority: str = ""
    tags: List[str] = field(default_factory=list)


PRIORITY_NAMES = ("min", "low", "default", "high", "max", "urgent")

# option name -> (long flag, short flag)
_FLAGS: Dict[str, tuple] = {
    "server": ("--server", "-s"),
    "title": ("--title", "-t"),
    "priority": ("--priority", "-p"),
    "tags": ("--tags", "-T"),
}

_ALLOWED_FLAGS: Dict[CommandType, FrozenSet[str]] = {
    CommandType.PUBLISH: frozenset({"server", "title", "priority", "tags"}),
    CommandType.SUBSCRIBE: frozenset({"server"}),
    CommandType.UNSUBSCRIBE: frozenset({"server"}),
}


def split_args(text: str) -> List[str]:
    """Shell-style tokenization of a chat line."""
    try:
        return shlex.split(text or "")
    except ValueError as e:
        raise CommandError(f"cannot parse command: {e}") from e


def _map_command(cmd_name: str) -> CommandType:
    """Map command name to CommandType."""
    mapping = {
        "publish": CommandType.PUBLISH,
        "pub": CommandType.PUBLISH,
        "send": CommandType.PUBLISH,
        "subscribe": CommandType.SUBSCRIBE,
        "sub": CommandType.SUBSCRIBE,
        "add": CommandType.SUBSCRIBE,
        "unsubscribe": CommandType.UNSUBSCRIBE,
        "unsub": CommandType.UNSUBSCRIBE,
        "del": CommandType.UNSUBSCRIBE,
        "rm": CommandType.UNSUBSCRIBE,
        "help": CommandType.HELP,
        "h": CommandType.HELP,
        "--help": CommandType.HELP,
        "-h": CommandType.HELP,
    }
    return mapping.get(cmd_name.lower(), CommandType.UNKNOWN)


def _flag_name(flag: str) -> Optional[str]:
    for name, spellings in _FLAGS.items():
        if flag in spellings:
            return name
    return None


def _looks_like_flag(arg: str) -> bool:
    if not arg.startswith("-") or arg == "-":
        return False
    # Negative numbers are message text, not flags.
    try:
        float(arg)
        return False
    except ValueError:
        return True


def _parse_options(cmd: CommandType, args: List[str]) -> tuple:
    options: Dict[str, str] = {}
    positionals: List[str] = []
    allowed = _ALLOWED_FLAGS.get(cmd, frozenset())
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--":
            positionals.extend(args[i + 1:])
            break
        if not _looks_like_flag(arg):
            positionals.append(arg)
            i += 1
            continue

        flag, eq, value = arg.partition("=")
        name = _flag_name(flag)
        if name is None:
            raise CommandError(f"flag provided but not defined: {flag}")
        if name not in allowed:
            raise CommandError(f"flag {flag} is not supported by {cmd.value}")
        if not eq:
            if i + 1 >= len(args):
                raise CommandError(f"flag needs an argument: {flag}")
            i += 1
            value = args[i]
        options[name] = value
        i += 1
    return options, positionals


def _validate_priority(priority: str) -> str:
    p = priority.strip().lower()
    if not p:
        return ""
    if p in PRIORITY_NAMES or p in ("1", "2", "3", "4", "5"):
        return p
    raise CommandError(f"invalid priority {priority}, expected 1-5 or one of {', '.join(PRIORITY_NAMES)}")


def parse_command(args: List[str], *, base_url: str) -> ParsedCommand:
    """
    Parse command tokens (without the leading bot mention).

    Examples:
        ["publish", "mytopic", "hello", "world", "--title=Hi"]
            -> PUBLISH topic=<base_url>/mytopic message="hello world" title="Hi"
        ["subscribe", "mytopic"] -> SUBSCRIBE topic=<base_url>/mytopic
        ["frobnicate"] -> UNKNOWN name="frobnicate"
        [] -> HELP
    """
    if not args:
        return ParsedCommand(type=CommandType.HELP, name="")

    name = args[0]
    cmd = _map_command(name)
    if cmd in (CommandType.UNKNOWN, CommandType.HELP):
        return ParsedCommand(type=cmd, name=name)

    options, positionals = _parse_options(cmd, args[1:])

    server = (options.get("server") or base_url or "").strip()
    if not server.startswith(("http://", "https://")):
        raise CommandError(f"invalid server URL {server}, must start with http:// or https://")

    if not positionals or not positionals[0].strip("/"):
        raise CommandError("missing topic, see help for usage details")
    topic = topic_url(server, positionals[0])

    if cmd != CommandType.PUBLISH:
        return ParsedCommand(type=cmd, name=name, topic=topic)

    message = " ".join(positionals[1:])
    if not message.strip():
        raise CommandError("missing message, see help for usage details")

    tags = [t.strip() for t in (options.get("tags") or "").split(",") if t.strip()]
    return ParsedCommand(
        type=cmd,
        name=name,
        topic=topic,
        message=message,
        title=options.get("title", ""),
        priority=_validate_priority(options.get("priority", "")),
        tags=tags,
    )


def format_help(mention: str = "@ntfybot", base_url: str = "https://ntfy.sh") -> str:
    """Generate help text for chat commands."""
    return f"""ntfy bot commands (default server: {base_url}):

📨 Publish:
  {mention} publish <topic> <message> [--title=T] [--priority=1-5] [--tags=t1,t2] [--server=URL]

📬 Subscription:
  {mention} subscribe <topic> [--server=URL] - forward messages from <topic> to this channel
  {mention} unsubscribe <topic> [--server=URL] - stop forwarding

❓ Help:
  {mention} help - show this help

Quote arguments that contain spaces, e.g. --title="Hi there"."""
