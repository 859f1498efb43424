"""CLI entry point for realtime-devtools."""

import argparse
import logging
import os
import sys

import realtime_devtools.app.config_store
import realtime_devtools.app.session
import realtime_devtools.io.logging_setup
import realtime_devtools.transport
import realtime_devtools.tui.app
from realtime_devtools.keys import DEFAULT_SHORTCUT, parse_shortcut

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="realtime-devtools",
        description="Watch a realtime channel's broadcast, database-change and presence traffic",
    )
    parser.add_argument(
        "--channel",
        type=str,
        default=None,
        help="Channel to monitor (default: persisted value, else {})".format(
            realtime_devtools.app.config_store.DEFAULT_CHANNEL
        ),
    )
    parser.add_argument(
        "--max-logs",
        type=int,
        default=None,
        help="Log entries to retain ({}-{}, default: persisted value)".format(
            realtime_devtools.app.config_store.MIN_MAX_LOGS,
            realtime_devtools.app.config_store.MAX_MAX_LOGS,
        ),
    )
    parser.add_argument(
        "--shortcut",
        type=str,
        default=os.environ.get("REALTIME_DEVTOOLS_SHORTCUT", DEFAULT_SHORTCUT),
        help="Key combination that shows/hides the panel (default: {})".format(DEFAULT_SHORTCUT),
    )
    parser.add_argument(
        "--no-shortcut",
        action="store_true",
        default=False,
        help="Disable the show/hide shortcut",
    )
    parser.add_argument(
        "--hidden",
        action="store_true",
        default=False,
        help="Start with the panel collapsed",
    )
    parser.add_argument(
        "--auth-interval",
        type=float,
        default=30.0,
        help="Seconds between session checks (default: 30)",
    )
    parser.add_argument(
        "--client",
        type=str,
        default=None,
        help="Realtime client as module:attr (env: REALTIME_DEVTOOLS_CLIENT)",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        default=False,
        help="Use the in-memory loopback client and generate synthetic traffic",
    )
    parser.add_argument(
        "--demo-interval",
        type=float,
        default=1.5,
        help="Average seconds between synthetic events (default: 1.5)",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        default=False,
        help="Print the effective configuration and exit",
    )
    return parser


def _overrides(args) -> dict:
    overrides = {}
    if args.channel is not None:
        overrides["channel_name"] = args.channel
    if args.max_logs is not None:
        overrides["max_logs"] = args.max_logs
    return overrides


def main(argv=None, client=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        shortcut = parse_shortcut(args.shortcut)
    except ValueError as exc:
        parser.error(str(exc))

    if args.print_config:
        store = realtime_devtools.app.config_store.ConfigStore()
        store.load()
        try:
            config = store.override(_overrides(args))
        except realtime_devtools.app.config_store.ConfigError as exc:
            parser.error(str(exc))
        for key, value in config.to_dict().items():
            print(f"{key} = {value!r}")
        print(f"shortcut = {shortcut.label!r}")
        return 0

    runtime = realtime_devtools.io.logging_setup.configure(
        session_name=args.channel or "devtools", stderr=False
    )

    demo_client = None
    if client is None and args.demo:
        demo_client = realtime_devtools.transport.LoopbackClient(session={"user": "demo"})
        client = demo_client
    if client is None and args.client:
        try:
            client = realtime_devtools.transport.load_client(args.client)
        except (ImportError, AttributeError, ValueError) as exc:
            parser.error(f"cannot load client {args.client!r}: {exc}")

    session = realtime_devtools.app.session.SessionFacade(
        client,
        locate=realtime_devtools.transport.client_from_env,
        overrides=_overrides(args),
        auth_interval=args.auth_interval,
    )

    app = realtime_devtools.tui.app.DevToolsApp(
        session,
        shortcut=shortcut,
        enable_shortcut=not args.no_shortcut,
        auto_show=not args.hidden,
        demo_client=demo_client,
        demo_interval=args.demo_interval,
    )
    logger.info("Starting devtools (log file: %s)", runtime.file_path)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
