"""
CLI subcommand implementations for the buddy-platform client.

Subcommands::

    buddy-platform status
    buddy-platform ping
    buddy-platform register
    buddy-platform login  --username U [--password P]
    buddy-platform logout
    buddy-platform clear  [--device-only | --user-only]

Credentials come from ``--app-id``/``--app-key`` or the ``BUDDY_APP_ID`` /
``BUDDY_APP_KEY`` environment variables (a ``.env`` file is honoured).
"""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from buddy_platform import (
    BuddyClient,
    HostPlatform,
    InlineDispatcher,
    JsonFileSettingsStore,
)
from buddy_platform.events import LOGIN_REQUIRED, SERVICE_EXCEPTION


def _resolve_credentials(args) -> tuple[str, str]:
    app_id = (args.app_id or os.environ.get("BUDDY_APP_ID", "")).strip()
    app_key = (args.app_key or os.environ.get("BUDDY_APP_KEY", "")).strip()
    if not app_id or not app_key:
        raise ValueError(
            "Application credentials missing. Pass --app-id/--app-key "
            "or set BUDDY_APP_ID and BUDDY_APP_KEY."
        )
    return app_id, app_key


def build_client(args) -> BuddyClient:
    """Create a client persisting its session under ``--settings-dir``."""
    app_id, app_key = _resolve_credentials(args)
    settings_dir = Path(args.settings_dir) if args.settings_dir else None
    client = BuddyClient(
        app_id,
        app_key,
        platform=HostPlatform(),
        store=JsonFileSettingsStore(settings_dir),
        dispatcher=InlineDispatcher(),
    )
    client.events.subscribe(
        SERVICE_EXCEPTION,
        lambda e: print(f"  ! {e.error.error}: {e.error.message or ''}".rstrip(), file=sys.stderr),
    )
    client.events.subscribe(
        LOGIN_REQUIRED,
        lambda: print("  ! Login required. Run: buddy-platform login --username ...", file=sys.stderr),
    )
    return client


def _print_status(client: BuddyClient) -> None:
    record = client.session.record
    print(f"App ID:        {client.app_id}")
    print(f"Auth level:    {client.auth_level.name}")
    print(f"Service root:  {client.pipeline.resolve_root_url()}")
    print(f"Device token:  {'yes' if record.device_token else 'no'}")
    if record.device_token_expires:
        print(f"  expires:     {record.device_token_expires.isoformat()}")
    print(f"User:          {record.user_id or '-'}")
    if record.last_user_id and record.last_user_id != record.user_id:
        print(f"Last user:     {record.last_user_id}")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

async def cmd_status(args):
    """Show the persisted session without contacting the service."""
    client = build_client(args)
    _print_status(client)


async def cmd_ping(args):
    client = build_client(args)
    try:
        result = await client.ping()
    finally:
        await client.close()
    if not result.is_success:
        print("Ping failed.")
        sys.exit(1)
    print("✓ Service reachable.")


async def cmd_register(args):
    """Register this machine as a device, replacing any cached device token."""
    client = build_client(args)
    try:
        token = await client.tokens.register_device()
    finally:
        await client.close()
    if token is None:
        print("Device registration failed.")
        sys.exit(1)
    print("✓ Device registered.")
    _print_status(client)


async def cmd_login(args):
    password = args.password
    if password is None:
        try:
            password = getpass.getpass("Password: ")
        except (EOFError, KeyboardInterrupt):
            sys.exit(0)

    client = build_client(args)
    try:
        result = await client.login_user(args.username, password)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await client.close()

    if not result.is_success:
        print("Login failed.")
        sys.exit(1)
    print(f"✓ Logged in as {result.value.username or result.value.id}.")


async def cmd_logout(args):
    client = build_client(args)
    if client.session.user_token is None:
        print("No user is logged in.")
        return
    try:
        result = await client.logout_user()
    finally:
        await client.close()
    if not result.is_success:
        print("Logout failed.")
        sys.exit(1)
    print("✓ Logged out.")


async def cmd_clear(args):
    """Forget stored credentials."""
    client = build_client(args)
    await client.auth.clear_credentials(
        clear_user=not args.device_only,
        clear_device=not args.user_only,
    )
    print("✓ Credentials cleared.")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="buddy-platform",
        description="Session and credential manager for the Buddy platform",
    )
    parser.add_argument("--app-id", help="Application id (or set BUDDY_APP_ID)")
    parser.add_argument("--app-key", help="Application key (or set BUDDY_APP_KEY)")
    parser.add_argument("--settings-dir", help="Directory holding persisted sessions")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show the stored session")
    subparsers.add_parser("ping", help="Check that the service is reachable")
    subparsers.add_parser("register", help="Register this machine as a device")

    p_login = subparsers.add_parser("login", help="Log a user in")
    p_login.add_argument("--username", required=True)
    p_login.add_argument("--password", help="Password (prompted when omitted)")

    subparsers.add_parser("logout", help="Log the current user out")

    p_clear = subparsers.add_parser("clear", help="Forget stored credentials")
    scope = p_clear.add_mutually_exclusive_group()
    scope.add_argument("--device-only", action="store_true", help="Keep the user token")
    scope.add_argument("--user-only", action="store_true", help="Keep the device token")

    return parser


COMMANDS = {
    "status": cmd_status,
    "ping": cmd_ping,
    "register": cmd_register,
    "login": cmd_login,
    "logout": cmd_logout,
    "clear": cmd_clear,
}


async def main(argv=None):
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        await COMMANDS[args.command](args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
