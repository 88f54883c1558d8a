"""BlockClock — the monotonic logical clock the protocol reads.

The oracle never writes the clock; it only compares stored creation and
response blocks against ``current_block`` to enforce the response and
challenge windows. Tests drive the clock by hand; a running node ticks it
every ``block_time`` seconds and persists the height so a restart never
moves it backwards.

With a ``data_dir`` every height change is written through to
``clock.json``, so a node killed without a clean shutdown restarts at the
last height it reached.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path

from attest_node.errors import ClockError

logger = logging.getLogger(__name__)


class BlockClock:
    """Monotonically increasing block height."""

    def __init__(self, start_block: int = 0, data_dir: str | Path | None = None) -> None:
        if start_block < 0:
            raise ClockError(f"Start block must be non-negative, got {start_block}")
        self._block = start_block
        self._data_dir = Path(data_dir) if data_dir else None
        self._lock = threading.Lock()

    @property
    def current_block(self) -> int:
        return self._block

    def advance(self, blocks: int = 1) -> int:
        """Move the clock forward and return the new height."""
        if blocks < 0:
            raise ClockError(f"Cannot advance by a negative amount ({blocks})")
        with self._lock:
            self._block += blocks
            self._persist()
            return self._block

    def set_block(self, block: int) -> None:
        """Jump to an absolute height, never backwards."""
        with self._lock:
            if block < self._block:
                raise ClockError(
                    f"Clock is monotonic: current {self._block}, requested {block}"
                )
            self._block = block
            self._persist()

    async def run(self, block_time: float, stop: asyncio.Event) -> None:
        """Tick one block every ``block_time`` seconds until ``stop`` is set."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=block_time)
            except asyncio.TimeoutError:
                height = self.advance()
                logger.debug("Block %d", height)

    def save(self, path: str | Path | None = None) -> None:
        """Persist the current height to a JSON file."""
        save_path = Path(path) if path else self._default_path()
        if save_path is None:
            raise ClockError("No save path specified and no data_dir configured")
        self._write(save_path)
        logger.info("Clock saved to %s (block %d)", save_path, self._block)

    def load(self, path: str | Path | None = None) -> None:
        """Restore the height from a JSON file, keeping the clock monotonic."""
        load_path = Path(path) if path else self._default_path()
        if load_path is None or not load_path.exists():
            raise ClockError(f"Clock file not found: {load_path}")
        data = json.loads(load_path.read_text())
        self.set_block(max(self._block, int(data["block"])))
        logger.info("Clock loaded from %s (block %d)", load_path, self._block)

    def _persist(self) -> None:
        path = self._default_path()
        if path is not None:
            self._write(path)

    def _write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps({"block": self._block}))
        os.replace(tmp, path)

    def _default_path(self) -> Path | None:
        if self._data_dir:
            return self._data_dir / "clock.json"
        return None
