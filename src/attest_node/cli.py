"""CLI entry point for launching an attestation oracle node.

Usage:
    attest-node --config node_config.json
    attest-node --config node_config.json --port 8481
    attest-node --config node_config.json --db-path ./attest-data/state.db

Environment variables:
    ATTEST_DATA_DIR:  Override data directory
    ATTEST_PORT:      Override listening port
    ATTEST_DB_PATH:   Override SQLite state database path
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from attest_node.config import load_config
from attest_node.errors import ConfigError, RegistryError
from attest_node.node import OracleNode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Launch an attestation oracle node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config", "-c",
        required=True,
        help="Path to JSON config file",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Override listening port",
    )
    parser.add_argument(
        "--data-dir", "-d",
        help="Override data directory",
    )
    parser.add_argument(
        "--db-path",
        help="Path to SQLite state database (overrides config)",
    )
    parser.add_argument(
        "--block-time",
        type=float,
        help="Seconds per logical block (0 disables the ticker)",
    )
    parser.add_argument(
        "--log-level", "-l",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser.parse_args(argv)


async def run_node(node: OracleNode) -> None:
    """Start the node and run until interrupted."""
    await node.start()

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def handle_signal() -> None:
        print("\nShutting down...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await stop_event.wait()
    await node.stop()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    print("=" * 60)
    print("  Attestation Oracle Node")
    print("=" * 60)

    overrides = {
        "port": args.port,
        "data_dir": args.data_dir,
        "db_path": args.db_path,
        "block_time": args.block_time,
    }
    try:
        config = load_config(args.config, overrides)
        node = OracleNode(config)
    except (ConfigError, RegistryError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"  Config loaded: {args.config}")
    print(f"  Port: {config.port}")
    print(f"  Data dir: {config.data_dir}")
    print(f"  State: {config.db_path or 'in-memory'}")
    print(f"  Operators: {len(config.operators)}")
    print(f"  Response window: {config.response_window} blocks")
    print(f"  Challenge window: {config.challenge_window} blocks")
    print(f"  Block time: {config.block_time}s")

    print("\n" + "=" * 60)
    print(f"  Starting node on :{config.port}...")
    print("=" * 60 + "\n")

    asyncio.run(run_node(node))


if __name__ == "__main__":
    main()
