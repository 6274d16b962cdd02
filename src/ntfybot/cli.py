from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Any, Optional

from . import __version__
from .kernel.settings import DEFAULT_CONFIG_FILE, ConfigError, resolve_config
from .ports.im.adapters.base import ChatAdapterError
from .ports.im.bridge import NtfyBridge, create_adapter
from .util.obslog import setup_root_json_logging


logger = logging.getLogger("ntfybot.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ntfybot",
        description="Discord bot for sending and receiving messages to/from ntfy",
        epilog=f"ntfybot {__version__}",
    )
    parser.add_argument("-c", "--config", default=None, help=f"config file (default {DEFAULT_CONFIG_FILE}, env NTFY_BOT_CONFIG_FILE)")
    parser.add_argument("--debug", action="store_true", default=None, help="enable debugging output (env NTFY_BOT_DEBUG)")
    parser.add_argument("-t", "--bot-token", default=None, help="bot token (env NTFY_BOT_TOKEN)")
    parser.add_argument("--base-url", default=None, help="default ntfy server (env NTFY_BOT_BASE_URL)")
    parser.add_argument("--version", action="version", version=f"ntfybot {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = resolve_config(
            token=args.bot_token,
            debug=args.debug,
            config_file=args.config,
            base_url=args.base_url,
        )
        adapter = create_adapter(config)
    except ConfigError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    setup_root_json_logging(component="ntfybot", level="DEBUG" if config.debug else "INFO")

    bridge = NtfyBridge(config, adapter)

    def handle_signal(signum: int, frame: Any) -> None:
        logger.info(f"[signal] Received signal {signum}, closing all active sessions")
        bridge.request_stop()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        bridge.run()
    except ChatAdapterError as e:
        logger.error(f"[error] {e}")
        print(f"[error] {e}", file=sys.stderr)
        return 1

    logger.info("Exiting.")
    return 0
