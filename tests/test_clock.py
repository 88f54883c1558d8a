"""Tests for attest_node.blockchain.clock.BlockClock."""

from __future__ import annotations

import asyncio

import pytest

from attest_node.blockchain.clock import BlockClock
from attest_node.errors import ClockError


class TestBlockClock:
    def test_starts_at_given_block(self) -> None:
        assert BlockClock(42).current_block == 42

    def test_negative_start_rejected(self) -> None:
        with pytest.raises(ClockError):
            BlockClock(-1)

    def test_advance(self) -> None:
        clock = BlockClock()
        assert clock.advance() == 1
        assert clock.advance(9) == 10
        with pytest.raises(ClockError):
            clock.advance(-1)

    def test_set_block_monotonic(self) -> None:
        clock = BlockClock(10)
        clock.set_block(10)
        clock.set_block(20)
        with pytest.raises(ClockError):
            clock.set_block(19)
        assert clock.current_block == 20

    def test_save_load(self, tmp_path) -> None:
        clock = BlockClock(77, data_dir=tmp_path)
        clock.save()
        restored = BlockClock(0, data_dir=tmp_path)
        restored.load()
        assert restored.current_block == 77

    def test_load_never_moves_backwards(self, tmp_path) -> None:
        BlockClock(5, data_dir=tmp_path).save()
        clock = BlockClock(50, data_dir=tmp_path)
        clock.load()
        assert clock.current_block == 50

    def test_every_move_written_through(self, tmp_path) -> None:
        clock = BlockClock(0, data_dir=tmp_path)
        clock.set_block(700)
        clock.advance(3)
        restored = BlockClock(0, data_dir=tmp_path)
        restored.load()
        assert restored.current_block == 703
        assert not (tmp_path / "clock.tmp").exists()

    def test_no_file_without_data_dir(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        BlockClock().advance(5)
        assert list(tmp_path.iterdir()) == []

    def test_save_without_path(self) -> None:
        with pytest.raises(ClockError):
            BlockClock().save()

    def test_load_missing_file(self, tmp_path) -> None:
        with pytest.raises(ClockError):
            BlockClock(data_dir=tmp_path).load()

    @pytest.mark.asyncio
    async def test_run_ticks_until_stopped(self) -> None:
        clock = BlockClock()
        stop = asyncio.Event()
        task = asyncio.create_task(clock.run(0.01, stop))
        await asyncio.sleep(0.2)
        stop.set()
        await task
        height = clock.current_block
        assert height >= 2
        await asyncio.sleep(0.05)
        assert clock.current_block == height

    @pytest.mark.asyncio
    async def test_run_persists_ticks(self, tmp_path) -> None:
        clock = BlockClock(10, data_dir=tmp_path)
        stop = asyncio.Event()
        task = asyncio.create_task(clock.run(0.01, stop))
        await asyncio.sleep(0.1)
        stop.set()
        await task
        restored = BlockClock(0, data_dir=tmp_path)
        restored.load()
        assert restored.current_block == clock.current_block > 10
