#!/usr/bin/env python3
"""
etcd-client Command Line Entry Point

Usage:
    etcd-client get /foo                      # Print the value of /foo
    etcd-client set /foo bar --ttl 60         # Set /foo, expiring after 60s
    etcd-client update /foo new old           # Compare-and-swap
    etcd-client delete /foo                   # Delete /foo
    etcd-client info /foo                     # Print index, TTL, expiration
    etcd-client watch /foo --forever          # Print every change below /foo
    etcd-client machines                      # List cluster members
    etcd-client leader                        # Print the current leader
    etcd-client --uri http://10.0.0.1:4001 get /foo

Environment Variables:
    ETCD_URI            - Seed node (default http://127.0.0.1:4001)
    ETCD_DEBUG          - Enable debug logging (true/false)
"""

import argparse
import logging
import sys
from typing import List, Optional

from .client import Client
from .config.settings import settings
from .errors import EtcdError
from .protocol.info import KeyInfo


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="etcd-client",
        description="etcd-client: Cluster-Aware etcd Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--uri",
        type=str,
        default=settings.SEED_URI,
        help="Seed node used to discover the cluster",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="Print the value of a key")
    get.add_argument("key")

    set_ = commands.add_parser("set", help="Set the value of a key")
    set_.add_argument("key")
    set_.add_argument("value")
    set_.add_argument("--ttl", type=int, default=None, help="Seconds to live")

    update = commands.add_parser("update", help="Set a key if it has the expected value")
    update.add_argument("key")
    update.add_argument("value")
    update.add_argument("expected")
    update.add_argument("--ttl", type=int, default=None, help="Seconds to live")

    delete = commands.add_parser("delete", help="Delete a key")
    delete.add_argument("key")

    info = commands.add_parser("info", help="Print details about a key")
    info.add_argument("key")

    watch = commands.add_parser("watch", help="Wait for changes below a prefix")
    watch.add_argument("prefix")
    watch.add_argument("--index", type=int, default=None, help="Index to start from")
    watch.add_argument("--forever", action="store_true", help="Keep watching")

    commands.add_parser("machines", help="List the cluster members")
    commands.add_parser("leader", help="Print the current leader")

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def format_info(info: KeyInfo) -> str:
    """Format a KeyInfo as one line of key=value pairs."""
    parts = [f"key={info.key}", f"value={info.value}", f"index={info.index}"]
    if info.action is not None:
        parts.append(f"action={info.action.value}")
    if info.ttl is not None:
        parts.append(f"ttl={info.ttl}")
    if info.expiration is not None:
        parts.append(f"expiration={info.expiration.isoformat()}")
    if info.dir:
        parts.append("dir=true")
    if info.new_key:
        parts.append("new_key=true")
    if info.previous_value is not None:
        parts.append(f"previous_value={info.previous_value}")
    return " ".join(parts)


def run_command(client: Client, args: argparse.Namespace) -> int:
    """
    Execute one sub-command and print its result.

    Returns:
        The process exit status
    """
    if args.command == "get":
        value = client.get(args.key)
        if value is None:
            print(f"{args.key}: not found", file=sys.stderr)
            return 1
        if isinstance(value, dict):
            for key, child in sorted(value.items()):
                print(f"{key}={child}")
        else:
            print(value)
    elif args.command == "set":
        previous = client.set(args.key, args.value, ttl=args.ttl)
        if previous is not None:
            print(previous)
    elif args.command == "update":
        if not client.update(args.key, args.value, args.expected, ttl=args.ttl):
            print(f"{args.key}: compare failed", file=sys.stderr)
            return 1
    elif args.command == "delete":
        previous = client.delete(args.key)
        if previous is None:
            print(f"{args.key}: not found", file=sys.stderr)
            return 1
        print(previous)
    elif args.command == "info":
        info = client.info(args.key)
        if info is None:
            print(f"{args.key}: not found", file=sys.stderr)
            return 1
        infos = info.values() if isinstance(info, dict) else [info]
        for entry in infos:
            print(format_info(entry))
    elif args.command == "watch":
        if args.forever:
            observer = client.observe(
                args.prefix,
                lambda value, key, info: print(format_info(info), flush=True),
                index=args.index,
            )
            observer.join()
            if observer.error is not None:
                raise observer.error
        else:
            print(format_info(client.watch(args.prefix, index=args.index)))
    elif args.command == "machines":
        for machine in client.machines():
            print(machine)
    elif args.command == "leader":
        print(client.leader())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line client."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    client = Client(uri=args.uri)
    try:
        with client:
            client.connect()
            return run_command(client, args)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except EtcdError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
