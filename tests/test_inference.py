"""Tests for the classification pool and request tokens."""

from __future__ import annotations

import asyncio
import threading

import pytest

from wastelens.config import Settings
from wastelens.errors import ClassificationTimeoutError, PoolBusyError
from wastelens.ml.inference import ClassificationPool
from wastelens.ml.tokens import RequestTokens


def _make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "max_concurrent": 2,
        "queue_timeout": 1.0,
        "classify_timeout": 1.0,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


async def _wait_for(event: threading.Event) -> None:
    for _ in range(200):
        if event.is_set():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("event was never set")


class TestClassificationPool:
    async def test_run_returns_result(self) -> None:
        pool = ClassificationPool(_make_settings())
        try:
            assert await pool.run(sum, [1, 2, 3]) == 6
            assert pool.active_count == 0
            assert pool.queue_depth == 0
        finally:
            pool.shutdown()

    async def test_run_propagates_errors(self) -> None:
        def boom() -> None:
            raise RuntimeError("kaput")

        pool = ClassificationPool(_make_settings())
        try:
            with pytest.raises(RuntimeError, match="kaput"):
                await pool.run(boom)
            assert pool.active_count == 0
        finally:
            pool.shutdown()

    async def test_slow_call_times_out(self) -> None:
        release = threading.Event()
        pool = ClassificationPool(_make_settings(classify_timeout=0.05))
        try:
            with pytest.raises(ClassificationTimeoutError):
                await pool.run(release.wait, 2.0)
        finally:
            release.set()
            pool.shutdown()

    async def test_timed_out_worker_keeps_its_slot(self) -> None:
        release = threading.Event()
        pool = ClassificationPool(
            _make_settings(max_concurrent=1, queue_timeout=0.05, classify_timeout=0.05),
        )
        try:
            with pytest.raises(ClassificationTimeoutError):
                await pool.run(release.wait, 2.0)
            assert pool.active_count == 1

            with pytest.raises(PoolBusyError):
                await pool.run(sum, [1])

            release.set()
            for _ in range(200):
                if pool.active_count == 0:
                    break
                await asyncio.sleep(0.01)
            assert pool.active_count == 0
            assert await pool.run(sum, [2, 3]) == 5
        finally:
            release.set()
            pool.shutdown()

    async def test_busy_when_no_slot_frees(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def hold() -> bool:
            started.set()
            return release.wait(2.0)

        pool = ClassificationPool(_make_settings(max_concurrent=1, queue_timeout=0.05, classify_timeout=5.0))
        try:
            holder = asyncio.create_task(pool.run(hold))
            await _wait_for(started)
            assert pool.active_count == 1

            with pytest.raises(PoolBusyError):
                await pool.run(sum, [1])
            assert pool.queue_depth == 0

            release.set()
            assert await holder is True
        finally:
            release.set()
            pool.shutdown()


class TestRequestTokens:
    def test_tokens_increase(self) -> None:
        tokens = RequestTokens()
        first = tokens.issue("a")
        second = tokens.issue("b")
        assert second > first

    def test_latest_token_is_current(self) -> None:
        tokens = RequestTokens()
        old = tokens.issue("a")
        new = tokens.issue("a")
        assert not tokens.is_current("a", old)
        assert tokens.is_current("a", new)

    def test_clients_are_independent(self) -> None:
        tokens = RequestTokens()
        a = tokens.issue("a")
        tokens.issue("b")
        assert tokens.is_current("a", a)

    def test_release_forgets_client(self) -> None:
        tokens = RequestTokens()
        token = tokens.issue("a")
        tokens.release("a", token)
        assert len(tokens) == 0
        assert not tokens.is_current("a", token)

    def test_release_of_stale_token_keeps_newer(self) -> None:
        tokens = RequestTokens()
        old = tokens.issue("a")
        new = tokens.issue("a")
        tokens.release("a", old)
        assert tokens.is_current("a", new)

    def test_concurrent_issue_is_unique(self) -> None:
        tokens = RequestTokens()
        issued: list[int] = []
        lock = threading.Lock()

        def worker(client: str) -> None:
            for _ in range(200):
                token = tokens.issue(client)
                with lock:
                    issued.append(token)

        threads = [threading.Thread(target=worker, args=(f"c{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(issued)) == 800
