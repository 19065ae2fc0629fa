"""Retrieval boundary: document types and the search-service contract.

The core treats vector search as an opaque ranked-retrieval service. Any
object with ``add_document`` and ``search`` methods qualifies (see
:class:`RetrievalService`); the ChromaDB implementation lives in
:mod:`ontorag.vectorstore.store`.

:func:`retrieve_candidates` wraps a search call so that failures and
timeouts degrade to "no candidates" instead of failing the request.
"""

from __future__ import annotations

import atexit
import threading
import weakref
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger


@dataclass(frozen=True)
class Document:
    """A corpus passage with its metadata (title, subject, level, ...)."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    doc_id: str = ""

    @property
    def title(self) -> str:
        return str(self.metadata.get("title", ""))

    @property
    def subject(self) -> str:
        return str(self.metadata.get("subject", ""))

    @property
    def level(self) -> str:
        return str(self.metadata.get("level", ""))


@dataclass(frozen=True)
class Candidate:
    """A retrieved document with its vector similarity in [0, 1]."""

    document: Document
    similarity: float


class RetrievalService(Protocol):
    """Contract the core needs from a vector search backend."""

    def add_document(self, document: Document) -> None: ...

    def search(self, query: str, top_k: int) -> list[Candidate]:
        """Return up to *top_k* candidates, most similar first."""
        ...




# ---------------------------------------------------------------------------
# Guarded search
# ---------------------------------------------------------------------------

DEFAULT_SEARCH_WORKERS = 8


class SearchPool:
    """Bounded worker pool for searches that run under a timeout.

    At most ``max_workers`` searches are in flight. When every slot is held
    (for example by searches hung on a dead backend) new work is rejected
    immediately instead of queueing behind them.
    """

    def __init__(self, max_workers: int = DEFAULT_SEARCH_WORKERS, name: str = "ontorag-search") -> None:
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_workers)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future | None:
        """Schedule ``fn(*args)``, or return None when the pool is saturated."""
        if not self._slots.acquire(blocking=False):
            return None

        def run() -> Any:
            try:
                return fn(*args)
            finally:
                self._slots.release()

        try:
            future = self._executor.submit(run)
        except BaseException:
            self._slots.release()
            raise
        # a cancelled future never runs, so its slot is returned here
        future.add_done_callback(self._release_if_cancelled)
        return future

    def _release_if_cancelled(self, future: Future) -> None:
        if future.cancelled():
            self._slots.release()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


# One pool per retrieval service, dropped when the service is collected
_pools: dict[int, SearchPool] = {}
_pools_lock = threading.Lock()


def _drop_pool(key: int) -> None:
    with _pools_lock:
        pool = _pools.pop(key, None)
    if pool is not None:
        pool.shutdown()


def pool_for(service: RetrievalService) -> SearchPool:
    """Return the search pool dedicated to *service*."""
    key = id(service)
    with _pools_lock:
        pool = _pools.get(key)
        if pool is None:
            pool = _pools[key] = SearchPool()
            try:
                weakref.finalize(service, _drop_pool, key)
            except TypeError:
                # not weak-referenceable: the pool lives until exit
                logger.debug("Search pool for {!r} is not tied to its lifetime", service)
    return pool


@atexit.register
def _shutdown_pools() -> None:
    with _pools_lock:
        pools = list(_pools.values())
        _pools.clear()
    for pool in pools:
        pool.shutdown()


def retrieve_candidates(
    service: RetrievalService,
    query: str,
    top_k: int,
    *,
    timeout_s: float | None = None,
    pool: SearchPool | None = None,
) -> list[Candidate]:
    """Search *service*, treating errors and timeouts as zero results.

    Args:
        service: Retrieval backend.
        query: Query text (usually the expanded query).
        top_k: Maximum number of candidates.
        timeout_s: Seconds to wait for the backend; ``None`` or ``0`` waits
            indefinitely.
        pool: Worker pool for timed searches. Defaults to the pool owned
            by *service*, so a hung backend never delays another one.

    Returns:
        Candidates in backend order, or an empty list on failure.
    """
    try:
        if timeout_s:
            future = (pool or pool_for(service)).submit(service.search, query, top_k)
            if future is None:
                logger.warning("Retrieval rejected, all search workers busy: '{}'", query[:60])
                return []
            try:
                candidates = future.result(timeout=timeout_s)
            except FutureTimeoutError:
                future.cancel()
                raise
        else:
            candidates = service.search(query, top_k)
    except FutureTimeoutError:
        logger.warning("Retrieval timed out after {}s for '{}'", timeout_s, query[:60])
        return []
    except Exception as exc:  # noqa: BLE001
        logger.warning("Retrieval failed for '{}': {}", query[:60], exc)
        return []

    logger.debug("Retrieved {} candidates for '{}'", len(candidates), query[:60])
    return list(candidates)[:top_k]
