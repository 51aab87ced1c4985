"""Command-line interface for gwinit.

This module handles argument parsing and runs the entrypoint steps in
order: normalize, reconcile identity, validate, plan, launch.
"""

import argparse
import logging
import os
import shlex
import sys

from .version import __version__
from .config import FIRST_RUN_FILE, MANAGED_USER, PRIVILEGE_DROP_TOOL, load_config
from .identity import FirstRunMarker, SystemAccounts, reconcile_identity
from .launch import (
    LaunchError,
    build_gateway_settings,
    execute_plan,
    plan_launch,
)


def setup_logging(verbose, quiet):
    """Configure logging based on verbosity flags."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    elif quiet:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


def is_root():
    return os.geteuid() == 0


def run_entrypoint(args, environ=None, accounts=None):
    """Run all entrypoint steps and hand over to the gateway."""
    if environ is None:
        environ = os.environ
    if accounts is None:
        accounts = SystemAccounts()

    config = load_config(environ)
    root = is_root()

    if args.dry_run:
        logging.debug("Dry-run mode: skipping UID/GID setup")
    else:
        reconcile_identity(config, accounts, FirstRunMarker(args.marker_file), args.user)

    settings = build_gateway_settings(config, root)
    plan = plan_launch(settings, config.DEBUG_MODE, root, user_name=args.user)

    if args.dry_run:
        if plan.debug_pause:
            logging.info("Debug mode: container would pause instead of starting the gateway")
        else:
            logging.info(f"Would run as: {plan.run_as or 'current user'}")
        print(shlex.join(plan.argv))
        return

    execute_plan(plan, drop_tool=args.drop_tool)


def create_parser():
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="gwinit",
        description="""Container entrypoint that launches an MCP gateway

Settings are read from the environment:
    PUID, PGID      UID/GID for the gateway user (first start only)
    PORT            Port to listen on (default: 8010)
    API_KEY         API key passed to the MCP server
    PROTOCOL        SHTTP, SSE or WS (default: SHTTP)
    CORS            Comma separated allowed origins, or 'all'
    DEBUG_MODE      Pause the container instead of starting the gateway""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,  # Require full option names
    )

    parser.add_argument("--version", action="version", version=f"gwinit {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-essential output")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the gateway command without changing UID/GID or starting it",
    )
    parser.add_argument(
        "--marker-file",
        default=FIRST_RUN_FILE,
        help=(
            "First-run marker file; UID/GID setup is skipped when it exists "
            f"(default: {FIRST_RUN_FILE})"
        ),
    )
    parser.add_argument(
        "--user",
        default=MANAGED_USER,
        help=f"Account that gets PUID/PGID and runs the gateway (default: {MANAGED_USER})",
    )
    parser.add_argument(
        "--drop-tool",
        default=PRIVILEGE_DROP_TOOL,
        help=f"Tool used to switch user when started as root (default: {PRIVILEGE_DROP_TOOL})",
    )

    return parser


def main(argv=None):
    """Main entry point."""
    # Always use sys.argv[1:] when called without arguments
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    try:
        run_entrypoint(args)
    except LaunchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logging.debug("Unexpected failure", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)
