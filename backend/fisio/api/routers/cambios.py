import asyncio
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from fisio.models import Identity
from fisio.services.auth_service import get_current_identity
from fisio.services.change_feed import hub

router = APIRouter(prefix="/cambios", tags=["cambios"])

KEEPALIVE_S = 15.0


@router.get("/stream")
async def stream_changes(request: Request, current: Identity = Depends(get_current_identity)):
    """
    커밋된 문서 변경을 server-sent events 로 전달한다.
    (collection, id) 만 보내므로 클라이언트는 권한이 있는 엔드포인트로 다시 조회한다.
    """
    async def event_source():
        async with hub.subscribe() as queue:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    change = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_S)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: change\ndata: {change.to_json()}\n\n"

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
