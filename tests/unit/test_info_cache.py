"""Tests for the single-flight informational dependency cache."""

from __future__ import annotations

import asyncio

import pytest

from depforge.config import ConfigurationError
from depforge.core.info_cache import InformationalDependencyCache, InformationalFetchError


def gated_fetcher(result, gate: asyncio.Event, calls: list[str]):
    async def fetch():
        calls.append("fetch")
        await gate.wait()
        return result

    return fetch


class TestInformationalDependencyCache:
    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_fetch(self):
        gate = asyncio.Event()
        calls: list[str] = []
        cache = InformationalDependencyCache(
            {"s3_deb_hashes": gated_fetcher({"riju-lang-python": "abc"}, gate, calls)}
        )

        tasks = [asyncio.ensure_future(cache.get("s3_deb_hashes")) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert calls == ["fetch"]
        assert cache.fetch_count("s3_deb_hashes") == 1
        assert all(r == {"riju-lang-python": "abc"} for r in results)

    @pytest.mark.asyncio
    async def test_later_requests_reuse_result(self):
        calls: list[str] = []

        async def fetch():
            calls.append("fetch")
            return {"python": "h1"}

        cache = InformationalDependencyCache({"s3_test_hashes": fetch})
        assert await cache.get("s3_test_hashes") == {"python": "h1"}
        assert await cache.get("s3_test_hashes") == {"python": "h1"}
        assert calls == ["fetch"]

    @pytest.mark.asyncio
    async def test_failure_delivered_to_every_waiter_and_not_retried(self):
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            raise OSError("bucket unreachable")

        cache = InformationalDependencyCache({"s3_deb_hashes": fetch})
        tasks = [asyncio.ensure_future(cache.get("s3_deb_hashes")) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, InformationalFetchError) for r in results)
        assert isinstance(results[0].__cause__, OSError)

        with pytest.raises(InformationalFetchError, match="bucket unreachable"):
            await cache.get("s3_deb_hashes")
        assert cache.fetch_count("s3_deb_hashes") == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_fetch(self):
        gate = asyncio.Event()
        calls: list[str] = []
        cache = InformationalDependencyCache(
            {"s3_deb_hashes": gated_fetcher({"a": "1"}, gate, calls)}
        )

        owner = asyncio.ensure_future(cache.get("s3_deb_hashes"))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(cache.get("s3_deb_hashes"))
        await asyncio.sleep(0)
        waiter.cancel()
        gate.set()

        assert await owner == {"a": "1"}
        with pytest.raises(asyncio.CancelledError):
            await waiter

    @pytest.mark.asyncio
    async def test_cancelled_owner_leaves_key_cancelled(self):
        gate = asyncio.Event()
        calls: list[str] = []
        cache = InformationalDependencyCache(
            {"s3_deb_hashes": gated_fetcher({"a": "1"}, gate, calls)}
        )

        owner = asyncio.ensure_future(cache.get("s3_deb_hashes"))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(cache.get("s3_deb_hashes"))
        await asyncio.sleep(0)
        owner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await owner
        with pytest.raises(asyncio.CancelledError):
            await waiter
        # not restarted for the rest of the run
        with pytest.raises(asyncio.CancelledError):
            await cache.get("s3_deb_hashes")
        assert calls == ["fetch"]
        assert cache.fetch_count("s3_deb_hashes") == 1

    @pytest.mark.asyncio
    async def test_unknown_key_is_configuration_error(self):
        cache = InformationalDependencyCache({})
        with pytest.raises(ConfigurationError, match="nope"):
            await cache.get("nope")

    @pytest.mark.asyncio
    async def test_get_many(self):
        async def debs():
            return {"riju-shared-nodejs": "d1"}

        async def tests():
            return {"python": "t1"}

        cache = InformationalDependencyCache({"debs": debs, "tests": tests})
        assert await cache.get_many(["tests", "debs"]) == {
            "tests": {"python": "t1"},
            "debs": {"riju-shared-nodejs": "d1"},
        }
        assert await cache.get_many([]) == {}

    def test_keys_and_contains(self):
        async def fetch():
            return {}

        cache = InformationalDependencyCache({"k": fetch})
        assert cache.keys == ["k"]
        assert "k" in cache
        assert "other" not in cache
        assert cache.fetch_count("k") == 0
