"""Realtime row feed over WebSocket."""

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.api import deps
from app.core.config import settings
from app.models.editing_phase import EditingPhase
from app.models.manuscript import Manuscript
from app.models.publishing_progress import PublishingProgress
from app.services import profiles, publishing, realtime
from app.services.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()

TABLE_MODELS = {
    "publishing_progress": PublishingProgress,
    "editing_phases": EditingPhase,
}
DERIVERS = {
    "publishing_progress": publishing.derive_from_rows,
}


def _authorized(db: Session, token: Optional[str], manuscript_id: uuid.UUID) -> bool:
    manuscript = db.query(Manuscript).filter(Manuscript.id == manuscript_id).first()
    if not manuscript:
        return False
    if settings.AUTH_DISABLED:
        return True

    token_data = AuthService.verify_token(token) if token else None
    if not token_data:
        return False
    profile = profiles.get_profile_by_auth_user(db, token_data.user_id)
    return profile is not None and (manuscript.author_id == profile.id or profile.is_admin)


def current_rows(db: Session, table: str, manuscript_id: uuid.UUID) -> list[dict[str, Any]]:
    model = TABLE_MODELS[table]
    rows = db.query(model).filter(model.manuscript_id == manuscript_id).all()
    return [realtime.row_image(row) for row in rows]


def _in_session(session_factory: sessionmaker, work: Callable[..., Any], *args: Any) -> Any:
    """Run ``work(db, *args)`` in a session that is closed before returning."""
    db = session_factory()
    try:
        return work(db, *args)
    finally:
        db.close()


async def _relay(websocket: WebSocket, subscription, mirror: realtime.RowMirror) -> None:
    """Forward accepted changes; stale or duplicate deliveries are dropped."""
    while True:
        change = await subscription.receive()
        if not mirror.apply(change):
            logger.debug("Dropped stale %s change v%s", change.table, change.version)
            continue
        await websocket.send_json(
            {
                "type": "change",
                "table": change.table,
                "event": change.event,
                "version": change.version,
                "new": change.new,
                "derived": mirror.derived,
            }
        )


async def _answer_pings(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive_text()
        if message == "ping":
            await websocket.send_text("pong")


@router.websocket("/ws/{table}/{manuscript_id}")
async def realtime_feed(
    websocket: WebSocket,
    table: str,
    manuscript_id: uuid.UUID,
    token: Optional[str] = Query(None),
    session_factory: sessionmaker = Depends(deps.get_session_factory),
):
    """Current rows first, then every committed change for the manuscript.

    Clients send "ping" to keep the socket alive and get "pong" back. Database
    work happens in short-lived sessions off the event loop; no connection is
    held while the socket is open.
    """
    if table not in TABLE_MODELS or not await run_in_threadpool(
        _in_session, session_factory, _authorized, token, manuscript_id
    ):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    # Subscribe before reading so no change between the two is lost
    subscription = await realtime.get_notifier().subscribe(realtime.channel_name(table, manuscript_id))
    tasks: set[asyncio.Task] = set()
    try:
        rows = await run_in_threadpool(_in_session, session_factory, current_rows, table, manuscript_id)
        mirror = realtime.RowMirror(derive=DERIVERS.get(table))
        mirror.seed(rows)
        await websocket.send_json(
            {"type": "snapshot", "table": table, "rows": rows, "derived": mirror.derived}
        )

        tasks = {
            asyncio.create_task(_relay(websocket, subscription, mirror)),
            asyncio.create_task(_answer_pings(websocket)),
        }
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    except WebSocketDisconnect:
        logger.debug("Realtime client left %s:%s", table, manuscript_id)
    except Exception as exc:
        logger.warning("Realtime feed %s:%s failed: %s", table, manuscript_id, exc)
        await _close_quietly(websocket, status.WS_1011_INTERNAL_ERROR)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await subscription.close()


async def _close_quietly(websocket: WebSocket, code: int) -> None:
    try:
        await websocket.close(code=code)
    except (RuntimeError, WebSocketDisconnect):
        # Already closed by the client
        pass
