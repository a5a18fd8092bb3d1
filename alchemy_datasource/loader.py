"""
Batch-Collapsing Loader

Purpose
-------
Collapse point lookups issued during one event-loop iteration into a single
call of a batch function, and memoize the results per key for the lifetime
of the loader.

Responsibilities
----------------
- Queue `load(key)` calls and dispatch them together on the next loop pass
- Deduplicate keys so each distinct key is fetched once per batch
- Split oversized batches into chunks of `max_batch_size`
- Enforce the batch function contract (one result per key, positional)
- Re-align unordered store results with `order_records`

Architecture Notes
------------------
**Batching window**:
- `load()` is a plain method returning an `asyncio.Future`; the first call
  of a window schedules `_dispatch` with `loop.call_soon`, so every `load()`
  made before control returns to the loop joins the same batch.

**Memo**:
- Keyed by `stringify_id(key)` unless a `cache_key_fn` is supplied
- Entries whose value is an exception are evicted once rejected, so a later
  `load()` for the same key goes back to the batch function
- `prime()` overwrites any existing entry

Usage Example
-------------
>>> loader = BatchLoader(fetch_users, name="users")
>>> a, b = await asyncio.gather(loader.load(1), loader.load(2))  # one fetch
"""

from __future__ import annotations

import asyncio
import time
from datetime import date, datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
    Union,
)
from uuid import UUID

from alchemy_datasource.core.config.config import Config
from alchemy_datasource.core.exceptions import (
    LoaderContractError,
    MissingKeyError,
    RecordNotFoundError,
)
from alchemy_datasource.core.logging.logger import get_logger

ID = Union[str, int, datetime, date, UUID]

K = TypeVar("K")
V = TypeVar("V")

BatchFn = Callable[[List[K]], Awaitable[Sequence[Union[V, BaseException]]]]


def stringify_id(id_value: Any) -> str:
    """Stable string form of an identifier: ISO-8601 for dates, `str()` otherwise."""
    if isinstance(id_value, (datetime, date)):
        return id_value.isoformat()
    return str(id_value)


def _attribute_key_fn(key_attr: str, entity: str) -> Callable[[Any], Any]:
    def key_of(record: Any) -> Any:
        value = getattr(record, key_attr, None)
        if value is None or value == "":
            raise MissingKeyError(entity, key_attr)
        return value

    return key_of


def order_records(
    ids: Sequence[Any],
    records: Iterable[V],
    key_attr: str = "id",
    key_fn: Optional[Callable[[V], Any]] = None,
    entity: str = "record",
) -> List[Union[V, RecordNotFoundError]]:
    """
    Re-align records returned by a multi-get with the ids that were requested.

    Args:
        ids: Requested identifiers, in the order results are expected
        records: Records returned by the store, in any order
        key_attr: Attribute holding each record's identifier
        key_fn: Custom key extraction (e.g. for alternate keys)
        entity: Entity name used in error values

    Returns:
        One entry per requested id: the matching record, or a
        `RecordNotFoundError` value where none was returned

    Raises:
        MissingKeyError: If the default key extraction finds no key value
    """
    extract = key_fn or _attribute_key_fn(key_attr, entity)
    by_id: Dict[str, V] = {stringify_id(extract(record)): record for record in records}

    ordered: List[Union[V, RecordNotFoundError]] = []
    for id_value in ids:
        record = by_id.get(stringify_id(id_value))
        ordered.append(record if record is not None else RecordNotFoundError(entity, id_value))
    return ordered


# (memo key, original key, waiting futures)
_BatchItem = Tuple[Hashable, Any, List["asyncio.Future[Any]"]]


class BatchLoader(Generic[K, V]):
    """
    Per-key loader that batches and memoizes calls to `batch_fn`.

    `batch_fn` receives the distinct keys of one batch and must return a
    sequence of the same length where each position holds the value for the
    key at that position, or an exception instance for a key that failed.
    """

    def __init__(
        self,
        batch_fn: BatchFn[K, V],
        *,
        max_batch_size: Optional[int] = None,
        cache: bool = True,
        cache_key_fn: Optional[Callable[[K], Hashable]] = None,
        name: str = "loader",
        logger: Optional[Any] = None,
    ) -> None:
        self._batch_fn = batch_fn
        self._max_batch_size = (
            max_batch_size if max_batch_size is not None else Config.LOADER_MAX_BATCH_SIZE
        )
        self._cache_enabled = cache
        self._cache_key_fn: Callable[[K], Hashable] = cache_key_fn or stringify_id
        self.name = name
        self.log = logger or get_logger(__name__)

        self._memo: Dict[Hashable, asyncio.Future[V]] = {}
        self._queue: List[Tuple[Hashable, K, asyncio.Future[V]]] = []
        self._dispatch_scheduled = False
        self._tasks: Set[asyncio.Task[None]] = set()

        self._batches_dispatched = 0
        self._keys_requested = 0
        self._keys_fetched = 0

    @property
    def max_batch_size(self) -> int:
        """Largest batch handed to `batch_fn`; 0 means unlimited."""
        return self._max_batch_size

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def load(self, key: K) -> asyncio.Future[V]:
        """
        Schedule a lookup of `key` and return a future for its value.

        Must be called from a running event loop. The future is rejected with
        the exception returned (or raised) by the batch function for this key.
        Each caller gets a shielded view of the shared memo entry, so
        cancelling one waiter leaves the lookup running for the others.
        """
        loop = asyncio.get_running_loop()
        memo_key = self._cache_key_fn(key)
        self._keys_requested += 1

        if self._cache_enabled:
            memoized = self._memo.get(memo_key)
            if memoized is not None and not memoized.cancelled():
                return asyncio.shield(memoized)

        future: asyncio.Future[V] = loop.create_future()
        self._queue.append((memo_key, key, future))
        if self._cache_enabled:
            self._memo[memo_key] = future

        if not self._dispatch_scheduled:
            self._dispatch_scheduled = True
            loop.call_soon(self._dispatch)
        return asyncio.shield(future)

    async def load_many(self, keys: Sequence[K]) -> List[Union[V, BaseException]]:
        """Load several keys; failures are returned positionally, never raised."""
        futures = [self.load(key) for key in keys]
        return list(await asyncio.gather(*futures, return_exceptions=True))

    def prime(self, key: K, value: V) -> None:
        """Store `value` as the memoized result for `key`, replacing any entry."""
        if not self._cache_enabled:
            return
        future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
        future.set_result(value)
        self._memo[self._cache_key_fn(key)] = future

    def clear(self, key: K) -> None:
        self._memo.pop(self._cache_key_fn(key), None)

    def clear_all(self) -> None:
        self._memo.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "batches_dispatched": self._batches_dispatched,
            "keys_requested": self._keys_requested,
            "keys_fetched": self._keys_fetched,
            "memo_size": len(self._memo),
            "max_batch_size": self._max_batch_size,
        }

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(self) -> None:
        self._dispatch_scheduled = False
        queue, self._queue = self._queue, []

        grouped: Dict[Hashable, _BatchItem] = {}
        for memo_key, key, future in queue:
            if memo_key in grouped:
                grouped[memo_key][2].append(future)
            else:
                grouped[memo_key] = (memo_key, key, [future])

        items = list(grouped.values())
        if not items:
            return

        chunk_size = self._max_batch_size if self._max_batch_size > 0 else len(items)
        for start in range(0, len(items), chunk_size):
            task = asyncio.ensure_future(self._run_batch(items[start : start + chunk_size]))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run_batch(self, items: List[_BatchItem]) -> None:
        keys = [key for _, key, _ in items]
        self._batches_dispatched += 1
        self._keys_fetched += len(keys)
        start = time.perf_counter()

        try:
            values = await self._batch_fn(keys)
        except Exception as exc:
            self.log.warning(
                f"Batch function failed for loader {self.name}",
                extra={
                    "loader": self.name,
                    "batch_size": len(keys),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            for item in items:
                self._reject(item, exc)
            return

        if not isinstance(values, Sequence) or len(values) != len(keys):
            received = len(values) if isinstance(values, Sequence) else 0
            error = LoaderContractError(self.name, len(keys), received)
            self.log.error(
                f"Loader contract violated: {self.name}",
                extra={"loader": self.name, "expected": len(keys), "received": received},
            )
            for item in items:
                self._reject(item, error)
            return

        for item, value in zip(items, values):
            if isinstance(value, BaseException):
                self._reject(item, value)
            else:
                for future in item[2]:
                    if not future.done():
                        future.set_result(value)

        self.log.debug(
            f"Loader batch dispatched: {self.name}",
            extra={
                "loader": self.name,
                "batch_size": len(keys),
                "duration_ms": round((time.perf_counter() - start) * 1000, 3),
            },
        )

    def _reject(self, item: _BatchItem, error: BaseException) -> None:
        memo_key, _, futures = item
        for future in futures:
            if self._memo.get(memo_key) is future:
                del self._memo[memo_key]
            if not future.done():
                future.set_exception(error)
