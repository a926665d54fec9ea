"""request-monitor — capture anonymous visits and report on them from the terminal."""

import logging
import sys
from argparse import ArgumentParser

from request_monitor.config import Config
from request_monitor.exceptions import StorageError
from request_monitor.formatter import format_details, format_page_footer, get_formatter
from request_monitor.models import DEVICE_TYPES
from request_monitor.monitor import RequestMonitor
from request_monitor.query import filter_from_params
from request_monitor.store import SORTABLE_COLUMNS

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="request-monitor",
        description="Record anonymous front-end visits and query the request log.",
    )
    parser.add_argument("--config", help="YAML config file (default: $CONFIG_PATH or config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the request log table")

    sub.add_parser("serve", help="Run the HTTP capture and admin API")

    search = sub.add_parser("search", help="Filter, sort and page through the log")
    search.add_argument("--search", help="Case-insensitive text matched against url, ip, agent, referer, browser, method")
    search.add_argument("--device", choices=DEVICE_TYPES, help="Exact device type")
    search.add_argument("--ip", help="Exact client IP address")
    search.add_argument("--since", help="ISO-8601 lower bound on timestamp")
    search.add_argument("--until", help="ISO-8601 upper bound on timestamp")
    search.add_argument("--sort-by", default="timestamp", choices=SORTABLE_COLUMNS)
    search.add_argument("--sort-order", default="DESC", choices=("ASC", "DESC"))
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--output", choices=["text", "json"], default="text")

    show = sub.add_parser("show", help="Show every field of one record")
    show.add_argument("id", type=int)

    clear = sub.add_parser("clear", help="Delete every record (irreversible)")
    clear.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    return parser


def load_config(path: str | None) -> Config:
    return Config(path) if path else Config.from_env()


def run_search(monitor: RequestMonitor, args) -> int:
    flt = filter_from_params(vars(args))
    result = monitor.engine.search(flt, args.sort_by, args.sort_order, args.page)
    formatter = get_formatter(args.output)
    for record in result.records:
        print(formatter(record))
    if args.output == "text":
        print(format_page_footer(result))
    return 0


def run_show(monitor: RequestMonitor, args) -> int:
    record = monitor.engine.get_details(args.id)
    if record is None:
        print(f"Log {args.id} not found", file=sys.stderr)
        return 1
    print(format_details(record))
    return 0


def run_clear(monitor: RequestMonitor, args) -> int:
    if not args.yes:
        answer = input("Are you sure you want to clear all logs? This cannot be undone. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 1
    removed = monitor.clear()
    print(f"Cleared {removed} log(s)")
    return 0


def run_serve(monitor: RequestMonitor, config: Config) -> int:
    from request_monitor.web import create_app

    app = create_app(config, monitor)
    server = config["server"]
    logger.info("Serving on %s:%d", server["host"], server["port"])
    app.run(host=server["host"], port=server["port"], debug=server["debug"])
    return 0


def main() -> int:
    args = build_parser().parse_args()
    config = load_config(args.config)

    logging.basicConfig(
        level=getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )

    monitor = RequestMonitor(config)
    monitor.on_enable()
    try:
        if args.command == "init":
            return 0
        if args.command == "serve":
            return run_serve(monitor, config)
        if args.command == "search":
            return run_search(monitor, args)
        if args.command == "show":
            return run_show(monitor, args)
        return run_clear(monitor, args)
    finally:
        monitor.store.close()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except StorageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)
