from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from fisio.schemas import DocumentChangeEvent

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
CacheKey = Tuple[str, Tuple[Tuple[str, Any], ...]]


def cache_key(collection: str, **filters: Any) -> CacheKey:
    return collection, tuple(sorted((k, v) for k, v in filters.items() if v is not None))


@dataclass
class _Entry:
    fetch: Fetcher
    value: Any = None
    loaded: bool = False
    stale: bool = False
    watchers: List[Callable[[Any], None]] = field(default_factory=list)
    task: Optional[asyncio.Task] = None
    # invalidate 마다 증가. 조회 도중 바뀌면 그 결과는 변경 전 데이터일 수 있다
    generation: int = 0


class QueryCache:
    """
    (collection, filters) 단위로 조회 결과를 보관한다.
    로컬 변경이나 변경 피드 이벤트가 오면 해당 collection 의 항목 중
    구독자가 있는 것은 stale 로 표시하고 바로 다시 조회하며, 구독자가 없는 것은 버린다.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, _Entry] = {}

    def __contains__(self, key: CacheKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.loaded and not entry.stale

    async def get(self, collection: str, fetch: Fetcher, **filters: Any) -> Any:
        key = cache_key(collection, **filters)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(fetch=fetch)
        if entry.loaded and not entry.stale:
            return entry.value
        return await self._load(entry)

    def watch(self, collection: str, fetch: Fetcher, callback: Callable[[Any], None], **filters: Any) -> Callable[[], None]:
        """결과가 (다시) 조회될 때마다 callback 을 호출한다. 반환값은 구독 해제 함수."""
        key = cache_key(collection, **filters)
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(fetch=fetch)
        entry.watchers.append(callback)
        if entry.loaded and not entry.stale:
            callback(entry.value)
        else:
            self._schedule(entry)

        def unwatch() -> None:
            if callback in entry.watchers:
                entry.watchers.remove(callback)
            if not entry.watchers and entry.stale:
                self._evict(key, entry)
        return unwatch

    def invalidate(self, collection: str) -> None:
        for key, entry in list(self._entries.items()):
            if key[0] != collection:
                continue
            entry.generation += 1
            entry.stale = True
            if entry.watchers:
                self._schedule(entry)
            else:
                self._evict(key, entry)

    def on_change(self, change: DocumentChangeEvent) -> None:
        self.invalidate(change.collection)

    def clear(self) -> None:
        for entry in self._entries.values():
            if entry.task is not None and not entry.task.done():
                entry.task.cancel()
        self._entries.clear()

    def _evict(self, key: CacheKey, entry: _Entry) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()

    def _schedule(self, entry: _Entry) -> None:
        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
        entry.task = asyncio.get_running_loop().create_task(self._refresh(entry))

    async def _refresh(self, entry: _Entry) -> None:
        try:
            await self._load(entry)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Refetch failed")

    async def _load(self, entry: _Entry) -> Any:
        while True:
            generation = entry.generation
            value = await entry.fetch()
            if generation == entry.generation:
                break
            logger.debug("Entry invalidated during fetch; refetching")
        entry.value = value
        entry.loaded = True
        entry.stale = False
        for callback in list(entry.watchers):
            callback(value)
        return value
