"""
=============================================================================
TCPEXCHANGE CLI ENTRY POINT
=============================================================================

    # Run the server role (waits for one client)
    python -m tcpexchange serve

    # Run the client role against a running server
    python -m tcpexchange connect --host 127.0.0.1

    # Run both roles in one process, on two threads
    python -m tcpexchange demo --port 0 --family ipv4 --log-level DEBUG

Environment variables (EXCHANGE_PORT, ...) provide defaults; command-line
arguments override them.

Exit status: 0 on success, 1 if any role failed.

=============================================================================
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .config import ExchangeConfig, ADDRESS_POLICIES
from .core.resolver import Family
from .errors import ExchangeError
from .log import setup_logging, LOG_FORMATS
from .roles import ServerRole, ClientRole, run_exchange


logger = logging.getLogger("tcpexchange.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcpexchange",
        description="Request/response exchange over raw TCP sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tcpexchange serve                        # Wait for one client on 20453
  python -m tcpexchange connect                      # Send hello, then END_MESSAGE
  python -m tcpexchange demo --port 0 --family ipv4  # Both roles, any free port
        """,
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tcpexchange {__version__}",
    )

    # ─────────────────────────────────────────────────────────────────────
    # OPTIONS SHARED BY EVERY SUBCOMMAND
    # ─────────────────────────────────────────────────────────────────────

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--host", "-H", default=None, help="Host (default: this machine)")
    common.add_argument("--port", "-p", default=None, help="Port or service name (default: 20453)")
    common.add_argument(
        "--family", "-f",
        choices=[family.name.lower() for family in Family],
        default=None,
        help="Address family (default: unspec)",
    )
    common.add_argument(
        "--policy",
        choices=ADDRESS_POLICIES,
        default=None,
        help="Use only the first resolved address, or try them in order",
    )
    common.add_argument("--timeout", "-t", type=float, default=None, help="Socket timeout in seconds")
    common.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    common.add_argument("--log-format", choices=LOG_FORMATS, default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", parents=[common], help="Run the server role")
    serve.add_argument(
        "--passive",
        action="store_true",
        help="Bind the wildcard address instead of loopback when no host is given",
    )

    connect = subparsers.add_parser("connect", parents=[common], help="Run the client role")
    connect.add_argument("--greeting", "-g", default=None, help="Opening message (default: hello)")

    subparsers.add_parser("demo", parents=[common], help="Run both roles on two threads")

    return parser


def config_from_args(args: argparse.Namespace) -> ExchangeConfig:
    """Environment first, then any argument given on the command line."""
    config = ExchangeConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "family": args.family,
        "address_policy": args.policy,
        "timeout": args.timeout,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    if getattr(args, "passive", False):
        overrides["passive"] = True
    if getattr(args, "greeting", None):
        overrides["greeting"] = args.greeting.encode("utf-8")

    config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level)

    try:
        if args.command == "serve":
            result = ServerRole(config).run()
            print(f"server: {len(result.messages)} message(s), ended by {result.ended_by.value}")

        elif args.command == "connect":
            result = ClientRole(config).run()
            print(f"client received: {result.reply.text!r}")

        else:
            outcome = run_exchange(config)
            if outcome.server_result is not None:
                print(f"server: ended by {outcome.server_result.ended_by.value}")
            if outcome.client_result is not None:
                print(f"client received: {outcome.client_result.reply.text!r}")
            if not outcome.ok:
                return 1

    except ExchangeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
