"""Command line interface for the Siotchain console."""

from __future__ import annotations

"""Command-line entry point.

Without a subcommand the tool connects to a node and either dispatches the
``--request`` string once or enters the interactive console. The ``unlock``
subcommand runs the account unlock controller for a comma-separated list of
accounts and exits non-zero if any of them cannot be unlocked.
"""

import argparse
import logging
import os
import sys
from typing import Any, Sequence

from . import __version__
from .accounts import (
    AccountUnlocker,
    PasswordSource,
    RemoteAccountManager,
    UnlockError,
    unlock_accounts,
)
from .commands import format_help
from .config import ConfigurationError, RPCConfig, load_password_list, load_rpc_config
from .console import console_main
from .dispatcher import RequestDispatcher
from .rpc_client import RPCError, RPCTransportError, SiotRPCClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _should_debug() -> bool:
    return os.environ.get("SIOT_DEBUG", "0").strip() not in {"", "0"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="siot-cli",
        description="the siotchain interactive mode cmd line interface",
        epilog="console commands:\n" + format_help(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--rpcip", default=None, help="HTTP-RPC server listening interface")
    parser.add_argument("--rpcport", type=int, default=None, help="HTTP-RPC server listening port")
    parser.add_argument(
        "--chainnetwork", type=int, default=None, help="Network identifier shown by getnodeinfo"
    )
    parser.add_argument("--config", default=None, help="YAML config file with an 'rpc' section")
    parser.add_argument(
        "--request",
        default="",
        help="Request for JSON RPC call, if no request specified, will go into the interactive mode",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    unlock_parser = subparsers.add_parser(
        "unlock", help="Unlock accounts on the node before use"
    )
    unlock_parser.add_argument(
        "--accounts",
        required=True,
        help="Comma separated list of accounts to unlock (addresses or key indexes)",
    )
    unlock_parser.add_argument(
        "--password",
        default=None,
        help="Password file to use for non-interactive password input",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> RPCConfig:
    overrides: dict[str, Any] = {
        "host": args.rpcip,
        "port": args.rpcport,
        "network_id": args.chainnetwork,
    }
    return load_rpc_config(config_path=args.config, overrides=overrides)


def cmd_console(args: argparse.Namespace, client: SiotRPCClient) -> None:
    dispatcher = RequestDispatcher(client, network_id=client.config.network_id)
    console_main(dispatcher, args.request or None)


def cmd_unlock(args: argparse.Namespace, client: SiotRPCClient) -> None:
    identifiers = args.accounts.split(",")
    if not any(identifier.strip() for identifier in identifiers):
        raise CLIError("no accounts given to unlock")
    passwords = PasswordSource(load_password_list(args.password))
    unlocker = AccountUnlocker(RemoteAccountManager(client), passwords)
    results = unlock_accounts(unlocker, identifiers)
    for result in results:
        print(f"Unlocked account {result.account.hex}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.debug or _should_debug():
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        client = SiotRPCClient(_config_from_args(args))
        if args.command == "unlock":
            cmd_unlock(args, client)
        elif args.command is None:
            cmd_console(args, client)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        UnlockError,
        RPCError,
        RPCTransportError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
