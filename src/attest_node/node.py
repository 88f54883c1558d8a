"""Oracle node — hosts the task manager behind an HTTP API.

A node:
1. Builds the stake registry from its configured operators
2. Opens the state store (SQLite when db_path is set, memory otherwise)
3. Ticks the logical clock every block_time seconds
4. Serves task creation, response submission and challenges over HTTP
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from aiohttp import web

from attest_node.api.routes import setup_routes
from attest_node.blockchain.clock import BlockClock
from attest_node.config import OracleConfig
from attest_node.crypto.bls import BLSScheme
from attest_node.models.notification import Notification
from attest_node.oracle.ground_truth import StaticGroundTruth
from attest_node.oracle.task_manager import TaskManager
from attest_node.registry.stake_registry import InMemoryStakeRegistry
from attest_node.storage.base import StateStore
from attest_node.storage.memory import MemoryStateStore
from attest_node.storage.statedb import StateDB

logger = logging.getLogger(__name__)


def build_registry(config: OracleConfig, scheme: BLSScheme) -> InMemoryStakeRegistry:
    """Register configured operators and their stakes at ``start_block``."""
    registry = InMemoryStakeRegistry(scheme)
    for op in config.operators:
        if op.secret_key:
            private_key = bytes.fromhex(op.secret_key)
            pubkey = scheme.public_key(private_key)
            pop = scheme.create_pop(private_key)
        else:
            pubkey = bytes.fromhex(op.pubkey)
            pop = bytes.fromhex(op.pop)
        registry.register_operator(op.operator_id, pubkey, pop)
        for quorum_id, amount in sorted(op.stakes.items()):
            registry.set_stake(quorum_id, op.operator_id, amount, config.start_block)
    return registry


class OracleNode:
    """The attestation oracle node."""

    def __init__(self, config: OracleConfig) -> None:
        config.validate()
        self.config = config
        self.data_dir = Path(config.data_dir)
        self.scheme = BLSScheme()
        self.registry = build_registry(config, self.scheme)
        self.store = self._open_store()
        self.clock = self._restore_clock()
        self.manager = TaskManager(
            self.registry,
            store=self.store,
            clock=self.clock,
            ground_truth=StaticGroundTruth.from_entries(
                config.ground_truth, default=config.ground_truth_default,
            ),
            response_window=config.response_window,
            challenge_window=config.challenge_window,
            scheme=self.scheme,
        )
        self.manager.subscribe(self._log_notification)

        self.app = web.Application()
        setup_routes(self.app, self)
        self._runner: web.AppRunner | None = None
        self._stop = asyncio.Event()
        self._ticker: asyncio.Task | None = None

    def _restore_clock(self) -> BlockClock:
        """Resume at the highest of start_block, the recorded state and clock.json."""
        recorded = self.store.highest_block()
        clock = BlockClock(max(self.config.start_block, recorded), data_dir=self.data_dir)
        if (self.data_dir / "clock.json").exists():
            clock.load()
        if clock.current_block > self.config.start_block:
            logger.info(
                "Clock resumed at block %d (start_block=%d, recorded=%d)",
                clock.current_block, self.config.start_block, recorded,
            )
        return clock

    def _open_store(self) -> StateStore:
        if not self.config.db_path:
            return MemoryStateStore()
        db = StateDB(self.config.db_path)
        db.open()
        return db

    @staticmethod
    def _log_notification(notification: Notification) -> None:
        logger.debug(
            "Notification #%d %s task=%d block=%d",
            notification.seq,
            notification.event_type.value,
            notification.task_index,
            notification.block,
        )

    async def start(self) -> None:
        """Start the HTTP server and the block ticker."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await site.start()

        if self.config.block_time > 0:
            self._stop.clear()
            self._ticker = asyncio.create_task(
                self.clock.run(self.config.block_time, self._stop)
            )

        logger.info(
            "Oracle node started on %s:%d (block=%d, operators=%d, tasks=%d)",
            self.config.host,
            self.config.port,
            self.clock.current_block,
            self.registry.operator_count,
            self.manager.task_count,
        )

    async def stop(self) -> None:
        """Stop gracefully and persist the clock height."""
        self._stop.set()
        if self._ticker:
            await self._ticker
            self._ticker = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        self.clock.save()
        self.store.close()
        logger.info("Oracle node stopped at block %d", self.clock.current_block)
