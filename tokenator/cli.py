"""
Tokenator command line

Usage:
    # Send a message (text, or JSON with --json)
    tokenator send --recipient <identity key> --box inbox --body "hello"
    tokenator send --recipient <identity key> --box inbox --body '{"a": 1}' --json --live

    # Inspect and clear a mailbox
    tokenator list --box inbox
    tokenator read <messageId> [<messageId> ...]
    tokenator ack <messageId> [<messageId> ...]

    # Print live messages as they arrive (Ctrl-C to stop)
    tokenator listen --box inbox

Configuration:
    TOKENATOR_* environment variables, optionally seeded from --env-file.
"""

import argparse
import asyncio
import json
import logging
import sys

from .channel import MessageChannel
from .config import Settings, configure_logging, load_settings
from .errors import TokenatorError, ValidationError

log = logging.getLogger(__name__)


def _print(value):
    print(json.dumps(value, indent=2, default=str))


# ============ COMMANDS ============

async def cmd_send(channel: MessageChannel, args):
    """Send one message."""
    body = args.body
    if args.json:
        try:
            body = json.loads(args.body)
        except ValueError as e:
            raise ValidationError(f"--body is not valid JSON: {e}", "ERR_INVALID_BODY")
    if args.live:
        result = await channel.send_live(args.recipient, args.box, body)
    else:
        result = await channel.send(args.recipient, args.box, body)
    _print(result)


async def cmd_list(channel: MessageChannel, args):
    """List a mailbox."""
    messages = await channel.list(args.box)
    _print([m.to_dict() for m in messages])
    if not messages:
        print(f"No messages in {args.box}", file=sys.stderr)


async def cmd_read(channel: MessageChannel, args):
    messages = await channel.read(args.ids)
    _print([m.to_dict() for m in messages])


async def cmd_ack(channel: MessageChannel, args):
    status = await channel.acknowledge(args.ids)
    _print({"status": status, "acknowledged": args.ids})


async def cmd_listen(channel: MessageChannel, args):
    """Print live messages until interrupted."""
    room_id = await channel.listen(
        args.box,
        lambda message: _print(message.to_dict()),
        auto_acknowledge=not args.no_ack,
    )
    log.info(f"Listening on {room_id}")
    await asyncio.Event().wait()


COMMANDS = {
    "send": cmd_send,
    "list": cmd_list,
    "read": cmd_read,
    "ack": cmd_ack,
    "listen": cmd_listen,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tokenator relay messaging")
    parser.add_argument("--env-file", help="Load TOKENATOR_* settings from this .env file")
    parser.add_argument("--log-level", help="Override TOKENATOR_LOG_LEVEL (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    send_parser = subparsers.add_parser("send", help="Send a message")
    send_parser.add_argument("--recipient", required=True, help="Recipient identity key")
    send_parser.add_argument("--box", required=True, help="Message box")
    send_parser.add_argument("--body", required=True, help="Message body")
    send_parser.add_argument("--json", action="store_true", help="Parse --body as JSON")
    send_parser.add_argument("--live", action="store_true", help="Also push over the live session")

    list_parser = subparsers.add_parser("list", help="List messages in a box")
    list_parser.add_argument("--box", required=True, help="Message box")

    read_parser = subparsers.add_parser("read", help="Read messages by id")
    read_parser.add_argument("ids", nargs="+", help="Message ids")

    ack_parser = subparsers.add_parser("ack", help="Acknowledge (delete) messages")
    ack_parser.add_argument("ids", nargs="+", help="Message ids")

    listen_parser = subparsers.add_parser("listen", help="Print live messages")
    listen_parser.add_argument("--box", required=True, help="Message box")
    listen_parser.add_argument("--no-ack", action="store_true",
                               help="Leave delivered messages on the relay")

    return parser


async def run(settings: Settings, args) -> None:
    channel = settings.channel()
    try:
        await COMMANDS[args.command](channel, args)
    finally:
        await channel.close()


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    try:
        settings = load_settings(args.env_file)
        configure_logging(args.log_level or settings.log_level)
        asyncio.run(run(settings, args))
    except TokenatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        log.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
