from __future__ import annotations
import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from fisio import kafka

QUEUE_SIZE = 256


@dataclass(frozen=True)
class DocumentChange:
    collection: str
    id: str

    def to_json(self) -> str:
        return json.dumps({"collection": self.collection, "id": self.id})


class ChangeHub:
    """
    커밋된 문서 변경을 구독자에게 전달하는 프로세스 내 허브.
    데이터는 보내지 않고 (collection, id) 만 보낸다. 구독자는 권한이 있는
    엔드포인트로 다시 조회한다.
    """

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def publish(self, collection: str, doc_id: str) -> None:
        change = DocumentChange(collection, doc_id)
        for queue in list(self._queues):
            try:
                queue.put_nowait(change)
            except asyncio.QueueFull:
                # 느린 구독자는 가장 오래된 이벤트를 버린다
                queue.get_nowait()
                queue.put_nowait(change)
        await kafka.publish_change(change.collection, change.id)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._queues.add(queue)
        try:
            yield queue
        finally:
            self._queues.discard(queue)


hub = ChangeHub()


async def publish(collection: str, doc_id: str) -> None:
    await hub.publish(collection, doc_id)
