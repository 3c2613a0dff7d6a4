"""Application entry point for the reward-event relay."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

import aiohttp
from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.danmaku_notifier import DanmakuNotifier
from adapters.profile_client import ProfileClient
from adapters.telegram_mapper import build_context
from adapters.telegram_messenger import TelegramMessenger
from client import authorize, build_client
from core.dedup import ForwardLedger, PendingWarnings
from core.processor import MessageProcessor
from core.rules_engine import build_filter_rules, screen_message

NAME = "CAT RAISING"
FONT = "tarty-1"

# Always masked in logs, on top of logging.redact.patterns.
DEFAULT_REDACTED_ENV = ("API_HASH", "2FA")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    names = list(DEFAULT_REDACTED_ENV)
    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", True):
        names.extend(redact_cfg.get("patterns", []))
    values = [os.getenv(name) for name in names]
    values.extend(target.access_key for target in settings.NOTIFICATIONS.targets)
    values.extend(target.app_secret for target in settings.NOTIFICATIONS.targets)
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/cat-raising.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO about reconnects and updates.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


async def _serve(client) -> None:
    logger = logging.getLogger(__name__)

    await client.connect()
    await authorize(client)

    async with aiohttp.ClientSession() as session:
        acknowledger = None
        if settings.NOTIFICATIONS.enabled:
            acknowledger = DanmakuNotifier(session, settings.NOTIFICATIONS)
            logger.info("Acknowledgments enabled for %s targets", len(settings.NOTIFICATIONS.targets))

        # The ledger and pending notices live for exactly one run of the relay.
        processor = MessageProcessor(
            rules=build_filter_rules(settings.FILTERS_CONFIG),
            messenger=TelegramMessenger(client, settings.DESTINATION),
            profiles=ProfileClient(session, settings.ENRICHMENT),
            monitors=settings.MONITORS,
            ledger=ForwardLedger(settings.HISTORY.size),
            warnings=PendingWarnings(settings.HISTORY.size),
            forward_on_enrichment_failure=settings.ENRICHMENT.forward_on_failure,
            acknowledger=acknowledger,
        )

        async def on_new_message(event) -> None:
            try:
                # Populate the chat entity so username-based keys resolve.
                await event.message.get_chat()
                await processor.handle(build_context(event.message))
            except Exception:
                logger.exception("Error while processing message")

        async def on_deleted(event) -> None:
            for message_id in event.deleted_ids:
                try:
                    await processor.handle_deletion(message_id, event.chat_id)
                except Exception:
                    logger.exception("Error while retracting for message %s", message_id)

        client.add_event_handler(on_new_message, events.NewMessage(incoming=True))
        client.add_event_handler(on_deleted, events.MessageDeleted())

        logger.info(
            "Listening on %s chat keys, forwarding to %s (history=%s)",
            len(settings.MONITORS),
            settings.DESTINATION.target,
            settings.HISTORY.size,
        )
        await client.run_until_disconnected()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting cat-raising relay")

    if not settings.MONITORS:
        raise RuntimeError("config.json has no enabled monitors")

    client = build_client()
    client.loop.run_until_complete(_serve(client))


def _login() -> None:
    _print_banner()
    _configure_logging()
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        await authorize(client)
        await client.disconnect()

    client.loop.run_until_complete(_run_login())


def _check(text: Optional[str]) -> None:
    """Screen a message offline and print what the relay would do with it."""

    if text is None:
        text = sys.stdin.read()
    admission = screen_message(text, build_filter_rules(settings.FILTERS_CONFIG))
    print(f"accepted:  {admission.accepted} ({admission.reason})")
    print(f"room ids:  {', '.join(admission.room_candidates) or '-'}")
    if admission.event is None:
        return
    print(f"time:      {admission.event.date_time}")
    for reward in admission.event.rewards:
        print(f"reward:    {reward.amount_text} [{reward.condition}]")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="cat-raising")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    subparsers.add_parser("login", help="Authorize the Telegram session and exit")
    check_parser = subparsers.add_parser("check", help="Screen a message offline (reads stdin without TEXT)")
    check_parser.add_argument("text", nargs="?", help="Message text to screen")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    if args.command == "check":
        _check(args.text)
        return
    _run()


if __name__ == "__main__":
    main()
