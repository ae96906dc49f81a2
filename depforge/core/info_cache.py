"""Single-flight memoized batch lookups against the remote store.

An informational dependency is a named, zero-argument coroutine that
enumerates something remote in one call (every published package hash,
every published test hash) and returns ``{artifact-local name: hash}``.
Many artifacts consult the same enumeration, so each key is fetched at
most once per run:

- the first ``get(key)`` starts the fetch and stores its future,
- every later or concurrent ``get(key)`` awaits that same future,
- a failed fetch is delivered to all waiters and is not retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping

from depforge.config import ConfigurationError

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Mapping[str, str]]]


class InformationalFetchError(RuntimeError):
    """Raised to every requester when an informational fetch fails."""


class InformationalDependencyCache:
    """Key-addressed single-flight memoizer for informational dependencies.

    Parameters
    ----------
    fetchers:
        Mapping from informational-dependency key to its fetch coroutine
        function.  The set of keys is fixed for the run.
    """

    def __init__(self, fetchers: Mapping[str, Fetcher]) -> None:
        self._fetchers: dict[str, Fetcher] = dict(fetchers)
        self._futures: dict[str, asyncio.Future[dict[str, str]]] = {}
        self._fetch_counts: dict[str, int] = {key: 0 for key in self._fetchers}

    @property
    def keys(self) -> list[str]:
        return list(self._fetchers)

    def __contains__(self, key: object) -> bool:
        return key in self._fetchers

    def fetch_count(self, key: str) -> int:
        """Return how many times the underlying fetch for *key* has run."""
        return self._fetch_counts.get(key, 0)

    async def get(self, key: str) -> dict[str, str]:
        """Return the mapping for *key*, fetching it on first use."""
        if key not in self._fetchers:
            raise ConfigurationError(f"Unknown informational dependency '{key}'")

        future = self._futures.get(key)
        if future is None:
            # No await between the lookup and the insert, so only one
            # coroutine can get here per key.
            future = asyncio.get_running_loop().create_future()
            self._futures[key] = future
            await self._fetch(key, future)
        # shield: a cancelled waiter must not cancel the shared result
        return await asyncio.shield(future)

    async def get_many(self, keys: list[str] | tuple[str, ...]) -> dict[str, dict[str, str]]:
        """Fetch several keys concurrently and return ``{key: mapping}``."""
        results = await asyncio.gather(*(self.get(key) for key in keys))
        return dict(zip(keys, results))

    async def _fetch(self, key: str, future: asyncio.Future[dict[str, str]]) -> None:
        self._fetch_counts[key] += 1
        logger.info("Fetching informational dependency '%s'", key)
        try:
            result = dict(await self._fetchers[key]())
        except Exception as exc:
            logger.error("Informational dependency '%s' failed: %s", key, exc)
            error = InformationalFetchError(
                f"Fetching informational dependency '{key}' failed: {exc}"
            )
            error.__cause__ = exc
            future.set_exception(error)
            return
        except BaseException:
            # The owning task was cancelled.  The future stays cancelled for the
            # rest of the run, so current and later waiters get CancelledError
            # and the fetch is not restarted.  The planner only cancels while
            # tearing the whole run down.
            future.cancel()
            raise
        logger.debug("Informational dependency '%s' returned %d entries", key, len(result))
        future.set_result(result)
