"""
Focus Triage API — FastAPI adapter for the presentation layer.

Exposes one operator's focus session:
- Queue and current item
- Navigation (next/prev/skip/select)
- Actions (done/snooze/dismiss)
- Stats, backlog, briefing and next-best-action
- Notices and configuration
"""

from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from focus_triage.briefing.advisor import derive_health
from focus_triage.dispatch.dispatcher import FocusAction
from focus_triage.models.config import TriageConfig
from focus_triage.models.crm import ActivityType
from focus_triage.navigation.controller import NavigationAction
from focus_triage.session.engine import FocusSession


# --- Request/Response Models ---

class NavigateRequest(BaseModel):
    action: NavigationAction
    item_id: Optional[str] = None


class ActivityCreateRequest(BaseModel):
    title: str
    type: ActivityType = ActivityType.TASK
    date: Optional[datetime] = None


class FocusStateResponse(BaseModel):
    cursor: int
    length: int
    current: Optional[dict] = None
    notice: Optional[str] = None


# --- Application Factory ---

def create_app(session: FocusSession) -> FastAPI:
    """Create and configure the FastAPI application.

    Every route that touches the session is a coroutine, so all of them run
    on the event loop and never interleave with a refresh in progress.
    """

    app = FastAPI(
        title="Focus Triage API",
        description="Unified focus queue for a single CRM operator",
        version="0.1.0",
    )
    app.state.session = session

    def _state(notice: Optional[str] = None) -> FocusStateResponse:
        current = session.current_item
        return FocusStateResponse(
            cursor=session.cursor,
            length=len(session.queue),
            current=current.model_dump(mode="json") if current else None,
            notice=notice,
        )

    # === QUEUE ===

    @app.post("/focus/refresh")
    async def refresh():
        """Re-read every backlog source and rebuild."""
        queue = await session.refresh()
        return {"length": len(queue), "loading": session.is_loading}

    @app.get("/focus/queue")
    async def get_queue():
        """The ordered focus queue."""
        return [item.model_dump(mode="json") for item in session.rebuild()]

    @app.get("/focus/current")
    async def get_current():
        """Cursor position and the item under it."""
        session.rebuild()
        return _state()

    # === NAVIGATION ===

    @app.post("/focus/navigate")
    async def navigate(req: NavigateRequest):
        """Move the cursor."""
        if req.action == NavigationAction.SELECT:
            if not req.item_id:
                raise HTTPException(422, "item_id is required for select")
            result = session.select(req.item_id)
        elif req.action == NavigationAction.SKIP:
            result = session.skip()
        elif req.action == NavigationAction.NEXT:
            result = session.next()
        else:
            result = session.prev()
        return _state(result.notice)

    @app.post("/focus/select/{item_id}")
    async def select_item(item_id: str):
        """Jump to an item by id (no-op if absent)."""
        session.select(item_id)
        return _state()

    # === ACTIONS ===

    @app.post("/focus/actions/{action}")
    async def act(action: FocusAction):
        """Apply done/snooze/dismiss to the current item."""
        if session.current_item is None:
            raise HTTPException(409, "Focus queue is empty")
        session.act(action)
        await session.settle()
        return _state()

    @app.post("/activities")
    async def create_activity(req: ActivityCreateRequest):
        """Create a follow-up activity."""
        temp_id = session.create_activity(req.title, req.type, req.date)
        await session.settle()
        return {"id": session.pending.resolve_id(temp_id), "temp_id": temp_id}

    # === INSIGHT ===

    @app.get("/focus/stats")
    async def get_stats():
        session.rebuild()
        return session.stats().model_dump()

    @app.get("/focus/backlog")
    async def get_backlog():
        """Pending activities by overdue / today / upcoming."""
        session.rebuild()
        return session.backlog.model_dump(mode="json")

    @app.get("/focus/briefing")
    async def get_briefing():
        """Best-effort summary, generated at most once per session."""
        session.rebuild()
        return {"briefing": await session.briefing()}

    @app.get("/focus/advice")
    async def get_advice():
        """Next-best-action for the deal behind the current item."""
        session.rebuild()
        advice = await session.advise_current()
        if advice is None:
            raise HTTPException(404, "Current item has no deal")
        return {
            **advice.model_dump(mode="json"),
            "health": derive_health(advice.probability_score).model_dump(),
        }

    # === NOTICES ===

    @app.get("/notices")
    async def get_notices(limit: int = 20):
        return [n.model_dump(mode="json") for n in list(session.notices)[-limit:]]

    # === CONFIG ===

    @app.get("/focus/config")
    async def get_config():
        return session.config.model_dump()

    @app.put("/focus/config")
    async def update_config(config: TriageConfig):
        session.apply_config(config)
        return config.model_dump()

    return app
