from __future__ import annotations
import asyncio
import logging
from typing import Callable, List, Optional

import httpx

from fisio.schemas import DocumentChangeEvent
from fisio.client.api import FisioApiClient, ApiError, AuthError

logger = logging.getLogger(__name__)

RECONNECT_DELAY_S = 5.0

ChangeListener = Callable[[DocumentChangeEvent], None]


class ChangeFeed:
    """
    서버의 변경 스트림(/cambios/stream)을 구독해 리스너에게 (collection, id) 를 전달한다.
    연결이 끊기면 고정 간격으로 다시 연결한다. 인증이 만료되면 멈춘다.
    """

    def __init__(self, api: FisioApiClient, reconnect_delay: float = RECONNECT_DELAY_S):
        self._api = api
        self._reconnect_delay = reconnect_delay
        self._listeners: List[ChangeListener] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def listen(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unlisten() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unlisten

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Change stream task ended with an error")

    def dispatch(self, change: DocumentChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Change listener failed for %s/%s", change.collection, change.id)

    async def _run(self) -> None:
        while True:
            try:
                async for change in self._api.stream_changes():
                    self.dispatch(change)
            except AuthError:
                logger.warning("Change stream rejected credentials; stopping")
                return
            except ApiError as e:
                # 5xx 등: 서버가 돌아올 때까지 재연결
                logger.warning("Change stream refused (%s): %s", e.status_code, e.detail)
            except httpx.HTTPError as e:
                logger.warning("Change stream disconnected: %s", e)
            await asyncio.sleep(self._reconnect_delay)
