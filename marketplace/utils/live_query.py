"""
Live, diff-free views over nested collections.

A subscription listens on the realtime bus for change events of its collection,
re-reads the complete result set on every change and hands it to ``on_data``
sorted client-side, so no composite index is needed on the store. This is meant
for small collections (messages of one conversation, quotes of one RFQ,
notifications of one user); every change costs a full read of the set.

With MONGODB_CHANGE_STREAMS enabled the collection's change stream is followed as
well, so writes from other services (quotes belong to the RFQ service) also
trigger a re-read. Without it, such writers announce changes with
``realtime_bus.notify_change(collection, parent_id)``.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from marketplace.core.config import MONGODB_CHANGE_STREAMS
from marketplace.core.constants import NESTED_PARENT_KEYS, nested_collection_name
from marketplace.core.errors import InvalidArgument
from marketplace.database.errors import UNAUTHORIZED_CODES, translate_store_errors
from marketplace.database.ids import normalize
from marketplace.utils.realtime_bus import change_channel, get_bus
from marketplace.utils.validation import require_id

logger = logging.getLogger(__name__)

OnData = Callable[[List[Dict[str, Any]]], Any]
OnError = Callable[[Exception], Any]

_OPERATORS = {
    "==": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
    "in": "$in",
    # equality against an array field matches any element
    "array-contains": "$eq",
}


def field_key(name: str) -> Callable[[Dict[str, Any]], Any]:
    """Sort key on one field, documents missing it go last, ties broken by _id."""

    def key(doc: Dict[str, Any]):
        value = doc.get(name)
        return (value is None, value if value is not None else 0, str(doc.get("_id", "")))

    return key


@dataclass
class QueryOptions:
    where: List[Tuple[str, str, Any]] = field(default_factory=list)
    sort_key: Optional[Callable[[Dict[str, Any]], Any]] = None
    descending: bool = False
    limit: Optional[int] = None

    def to_filter(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for name, op, value in self.where:
            if op not in _OPERATORS:
                raise InvalidArgument(f"Unsupported filter operator: {op}")
            query.setdefault(name, {})[_OPERATORS[op]] = value
        return query

    def apply(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if self.sort_key is not None:
            docs.sort(key=self.sort_key, reverse=self.descending)
        if self.limit is not None:
            docs = docs[: self.limit]
        return docs


@translate_store_errors
async def _fetch_all(collection, query: Dict[str, Any]) -> List[Dict[str, Any]]:
    docs = await collection.find(query).to_list(length=None)
    return [normalize(doc) for doc in docs]


async def _call(callback: Callable, *args) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class Subscription:

    def __init__(
        self,
        collection,
        channel: str,
        query: Dict[str, Any],
        options: QueryOptions,
        on_data: OnData,
        on_error: Optional[OnError],
        watch_pipeline: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self._collection = collection
        self._channel = channel
        self._query = query
        self._options = options
        self._on_data = on_data
        self._on_error = on_error
        self._watch_pipeline = watch_pipeline
        self._dirty = asyncio.Event()
        self._closed = False
        self._listener_error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "Subscription":
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._task_done)
        return self

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _on_change(self, message: str) -> None:
        self._dirty.set()

    def _listener_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            self._listener_error = task.exception()
            self._dirty.set()

    def _task_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Live query on %s crashed", self._channel, exc_info=task.exception())

    @translate_store_errors
    async def _watch(self) -> None:
        try:
            async with self._collection.watch(self._watch_pipeline, full_document="updateLookup") as stream:
                async for _ in stream:
                    self._dirty.set()
        except OperationFailure as exc:
            if exc.code in UNAUTHORIZED_CODES:
                raise
            # standalone servers have no change streams, bus events still drive re-reads
            logger.warning("Change stream on %s unavailable, using bus events only: %s", self._channel, exc)

    async def _run(self) -> None:
        bus = await get_bus()
        sub = None
        listeners: List[asyncio.Task] = []
        try:
            # listen before the first read so a change racing the read is not lost
            sub = await bus.subscribe(self._channel, self._on_change)
            listeners.append(asyncio.create_task(sub.run()))
            if self._watch_pipeline is not None:
                listeners.append(asyncio.create_task(self._watch()))
            for listener in listeners:
                listener.add_done_callback(self._listener_done)
            while not self._closed:
                self._dirty.clear()
                docs = self._options.apply(await _fetch_all(self._collection, self._query))
                if self._closed:
                    break
                await _call(self._on_data, docs)
                await self._dirty.wait()
                if self._listener_error is not None:
                    raise self._listener_error
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            await self._fail(exc)
        finally:
            for listener in listeners:
                listener.cancel()
            if sub is not None:
                await sub.cancel()

    async def _fail(self, exc: Exception) -> None:
        if self._closed:
            return
        self._closed = True
        logger.warning("Live query on %s ended with %r", self._channel, exc)
        if self._on_error is not None:
            await _call(self._on_error, exc)


class LiveQueryGateway:

    def __init__(self, db: AsyncIOMotorDatabase, change_streams: bool = MONGODB_CHANGE_STREAMS) -> None:
        self._db = db
        self._change_streams = change_streams

    def subscribe(
        self,
        parent_collection: str,
        parent_id: str,
        child_collection: str,
        options: Optional[QueryOptions],
        on_data: OnData,
        on_error: Optional[OnError] = None,
    ) -> Callable[[], None]:
        """
        Observe the children of one parent document.

        ``on_data`` receives the complete, sorted result set once right away and again
        after every change. ``on_error`` fires at most once and ends the subscription.
        The returned callable unsubscribes; it is idempotent and no callback runs after it.
        Must be called from a running event loop.

        Changes are picked up from ``notify_change`` events on the realtime bus and,
        with change streams enabled, from the collection's change stream, which also
        covers writes made by other services.
        """
        parent_key = NESTED_PARENT_KEYS.get((parent_collection, child_collection))
        if parent_key is None:
            raise InvalidArgument(f"{child_collection} is not a nested collection of {parent_collection}")
        require_id(parent_id, "Parent ID")
        options = options or QueryOptions()
        name = nested_collection_name(parent_collection, child_collection)
        query = options.to_filter()
        query[parent_key] = parent_id
        # deletes carry no fullDocument, any delete in the collection triggers a re-read
        pipeline = [{"$match": {"$or": [{f"fullDocument.{parent_key}": parent_id}, {"operationType": "delete"}]}}]
        subscription = Subscription(
            self._db[name],
            change_channel(name, parent_id),
            query,
            options,
            on_data,
            on_error,
            watch_pipeline=pipeline if self._change_streams else None,
        )
        return subscription.start().unsubscribe

    def subscribe_collection(
        self,
        collection: str,
        options: Optional[QueryOptions],
        on_data: OnData,
        on_error: Optional[OnError] = None,
    ) -> Callable[[], None]:
        """Same contract as subscribe(), over a top-level collection."""
        options = options or QueryOptions()
        subscription = Subscription(
            self._db[collection],
            change_channel(collection),
            options.to_filter(),
            options,
            on_data,
            on_error,
            watch_pipeline=[] if self._change_streams else None,
        )
        return subscription.start().unsubscribe
