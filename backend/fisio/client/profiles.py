from __future__ import annotations
import asyncio
import logging
from typing import Optional

from fisio.schemas import DocumentChangeEvent
from fisio.client.api import FisioApiClient
from fisio.client.feed import ChangeFeed
from fisio.client.gate import ProfileCallback, ErrorCallback, Unsubscribe

logger = logging.getLogger(__name__)


class ApiProfileSource:
    """
    로그인한 identity 의 프로필을 API 로 조회하고, 변경 피드에
    usuarios/{uid} 변경이 오면 다시 조회해 스냅샷을 전달한다.
    """

    def __init__(self, api: FisioApiClient, feed: Optional[ChangeFeed] = None):
        self._api = api
        self._feed = feed

    def watch(self, uid: str, on_snapshot: ProfileCallback, on_error: ErrorCallback) -> Unsubscribe:
        loop = asyncio.get_running_loop()
        pending: dict = {"task": None, "closed": False}

        async def fetch() -> None:
            try:
                profile = await self._api.get_my_profile()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not pending["closed"]:
                    on_error(e)
                return
            if not pending["closed"]:
                on_snapshot(profile)

        def refetch() -> None:
            task = pending["task"]
            if task is not None and not task.done():
                task.cancel()
            pending["task"] = loop.create_task(fetch())

        def on_change(change: DocumentChangeEvent) -> None:
            if change.collection == "usuarios" and change.id == uid:
                logger.debug("Profile %s changed; refetching", uid)
                refetch()

        unlisten = self._feed.listen(on_change) if self._feed is not None else None
        refetch()

        def unsubscribe() -> None:
            pending["closed"] = True
            if unlisten is not None:
                unlisten()
            task = pending["task"]
            if task is not None and not task.done():
                task.cancel()
        return unsubscribe


class NullProfileSource:
    """백엔드 설정이 없을 때 사용. 어떤 스냅샷도 전달하지 않는다."""

    def watch(self, uid: str, on_snapshot: ProfileCallback, on_error: ErrorCallback) -> Unsubscribe:
        return lambda: None
