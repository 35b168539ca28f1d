"""CLI entry point for GenSync."""

import argparse
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .communicants import SocketCommunicant
from .config import load_config
from .exceptions import GenSyncError
from .gen_sync import GenSync, read_data_file


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            if "exception" in log_data:
                log_data["exception"] = str(log_data["exception"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def _print_peer_summary(gensync: GenSync) -> None:
    for index in range(gensync.num_peers()):
        result = gensync.last_result(index)
        status = "ok" if result and result.success else "FAILED"
        print(
            f"  peer {index} ({gensync.get_peer(index).peer_id}): {status}, "
            f"sent {gensync.get_xmit_bytes(index)} B, "
            f"received {gensync.get_recv_bytes(index)} B"
        )
        if result and result.error:
            print(f"    {result.error}")


def cmd_listen(args: argparse.Namespace) -> int:
    """Serve sync requests from every configured peer."""
    config = load_config(args.config)

    try:
        gensync = GenSync.from_config(config)
    except GenSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with gensync:
        try:
            method = gensync.get_method(args.method)
        except IndexError:
            print(f"Error: no sync method at index {args.method}", file=sys.stderr)
            return 1
        print(f"Node {config.node.name}: listening for {method.name}")

        # Bind every peer up front so clients can connect in any order
        for index in range(gensync.num_peers()):
            peer = gensync.get_peer(index)
            if isinstance(peer, SocketCommunicant):
                try:
                    peer.bind()
                except GenSyncError as e:
                    print(f"Error: {e}", file=sys.stderr)
                    return 1
            print(f"  peer {index} on port {gensync.get_port(index)}")

        ok = gensync.listen_sync(args.method)
        _print_peer_summary(gensync)
        print(f"{len(gensync.dump_elements())} elements after sync")

    return 0 if ok else 1


def cmd_sync(args: argparse.Namespace) -> int:
    """Start a sync with every configured peer."""
    config = load_config(args.config)

    try:
        gensync = GenSync.from_config(config)
    except GenSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    with gensync:
        try:
            method = gensync.get_method(args.method)
        except IndexError:
            print(f"Error: no sync method at index {args.method}", file=sys.stderr)
            return 1
        print(f"Node {config.node.name}: syncing with {method.name}")
        ok = gensync.start_sync(args.method)
        _print_peer_summary(gensync)
        print(f"{len(gensync.dump_elements())} elements after sync")

    return 0 if ok else 1


def cmd_add(args: argparse.Namespace) -> int:
    """Append elements to the node's data file."""
    config = load_config(args.config)
    if not config.node.data_file:
        print("Error: node.data_file is not configured", file=sys.stderr)
        return 1

    try:
        with GenSync(file_name=config.node.data_file,
                     max_element_size=config.node.max_element_size) as gensync:
            for value in args.elements:
                gensync.add_element(value)
    except GenSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Added {len(args.elements)} elements to {config.node.data_file}")
    return 0


def cmd_dump(args: argparse.Namespace) -> int:
    """Print the node's elements."""
    config = load_config(args.config)
    if not config.node.data_file:
        print("Error: node.data_file is not configured", file=sys.stderr)
        return 1

    try:
        elements = read_data_file(config.node.data_file, config.node.max_element_size)
    except GenSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([e.data for e in elements], indent=2))
    else:
        for element in elements:
            print(element.data)
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="gensync",
        description="Reconcile element sets with remote peers",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in defaults)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Listen command
    listen_parser = subparsers.add_parser("listen", help="Serve sync requests from peers")
    listen_parser.add_argument(
        "-m", "--method",
        type=int,
        default=0,
        help="Index of the configured sync method (default: 0)",
    )
    listen_parser.set_defaults(func=cmd_listen)

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Sync with every configured peer")
    sync_parser.add_argument(
        "-m", "--method",
        type=int,
        default=0,
        help="Index of the configured sync method (default: 0)",
    )
    sync_parser.set_defaults(func=cmd_sync)

    # Add command
    add_parser = subparsers.add_parser("add", help="Add elements to the data file")
    add_parser.add_argument("elements", nargs="+", help="Elements to add")
    add_parser.set_defaults(func=cmd_add)

    # Dump command
    dump_parser = subparsers.add_parser("dump", help="Print stored elements")
    dump_parser.add_argument(
        "--json",
        action="store_true",
        help="Output elements as JSON",
    )
    dump_parser.set_defaults(func=cmd_dump)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
