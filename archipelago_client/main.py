"""Command-line text client for Archipelago servers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Any

from .bounce import Bounced
from .client import Client, ClientConfig
from .config import apply_overrides, load_config, validate_config
from .errors import ArchipelagoError
from .messages import Print, ReceivedItems, RichPrint, RoomUpdate
from .models import ServerMessage
from .utils import get_timestamp, sanitize_text_input

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure logging from the AP_LOG_LEVEL environment variable."""
    log_level = os.environ.get("AP_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archipelago-client",
        description="Connect to an Archipelago room and print its messages.",
    )
    parser.add_argument("--server", help="server address, host[:port] or a ws(s):// URL")
    parser.add_argument("--game", help="game of the slot (empty for text-only clients)")
    parser.add_argument("--slot", help="slot name to join")
    parser.add_argument("--password", help="room password")
    parser.add_argument("--tag", action="append", dest="tags", help="client tag (repeatable)")
    parser.add_argument("--say", help="chat line to send after joining")
    parser.add_argument(
        "--no-data-package",
        action="store_true",
        help="do not fetch the data package (names stay unresolved)",
    )
    return parser


def format_message(message: ServerMessage, client: Client) -> str | None:
    """Render a server message for the terminal, or None to skip it."""
    if isinstance(message, RichPrint):
        if client.connected is not None:
            message.add_names(client.connected, client.data_package)
        return str(message)
    if isinstance(message, Print):
        return message.text
    if isinstance(message, ReceivedItems):
        return f"Received {len(message.items)} item(s) starting at index {message.index}"
    if isinstance(message, Bounced) and message.death_link is not None:
        death = message.death_link
        return death.cause or f"{death.source} died."
    return None


async def _print_messages(client: Client) -> None:
    async for message in client:
        if isinstance(message, RoomUpdate):
            client.apply_room_update(message)
            continue
        text = format_message(message, client)
        if text is None:
            logger.debug("Ignoring %s", message.cmd)
            continue
        print(f"[{get_timestamp()}] {text}")
    logger.info("Server closed the connection")


async def run(settings: dict[str, Any], say: str | None = None) -> int:
    """Connect, join the configured slot and print messages until stopped.

    Args:
        settings: Merged configuration
        say: Optional chat line to send after joining

    Returns:
        Process exit code
    """
    if not settings.get("slot"):
        logger.error("No slot name configured. Pass --slot or set \"slot\" in the config file.")
        return 2

    config = ClientConfig(
        uuid=settings["uuid"],
        max_message_size=settings["max_message_size"],
        heartbeat_s=settings["heartbeat_s"],
    )
    client = await Client.connect(settings["server"], config=config)
    async with client:
        if settings["fetch_data_package"]:
            await client.get_data_package()
        connected = await client.connect_slot(
            settings["game"],
            settings["slot"],
            password=settings["password"],
            items_handling=settings["items_handling"],
            tags=settings["tags"],
        )
        print(f"Joined as slot {connected.slot} on team {connected.team}.")

        if say:
            text = sanitize_text_input(say)
            if text is None:
                logger.warning("Not sending invalid chat text")
            else:
                await client.say(text)

        stop_event = asyncio.Event()

        def signal_handler() -> None:
            logger.info("Received shutdown signal")
            stop_event.set()

        loop = asyncio.get_running_loop()
        stop_signals = (signal.SIGINT, signal.SIGTERM)
        for sig in stop_signals:
            loop.add_signal_handler(sig, signal_handler)

        try:
            pump = asyncio.create_task(_print_messages(client))
            stopper = asyncio.create_task(stop_event.wait())
            done, pending = await asyncio.wait({pump, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            # The socket must not close under a pump that is still unwinding
            await asyncio.gather(*pending, return_exceptions=True)
            if pump in done:
                pump.result()
        finally:
            for sig in stop_signals:
                loop.remove_signal_handler(sig)

    logger.info("Shutting down...")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()

    overrides = {key: getattr(args, key) for key in ("server", "game", "slot", "password", "tags")}
    if args.no_data_package:
        overrides["fetch_data_package"] = False

    try:
        settings = validate_config(apply_overrides(load_config(), overrides))
        return asyncio.run(run(settings, say=args.say))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except ArchipelagoError as e:
        logger.error("%s", e)
        return 1
    except ValueError as e:
        logger.error("Invalid setting or argument: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
