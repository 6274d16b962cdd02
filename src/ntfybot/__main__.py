"""
Entry point for running the bot as a module.

Usage:
    python -m ntfybot --bot-token <token> [--config /etc/ntfy/bot.yml] [--debug]
"""

from __future__ import annotations

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
