"""JSON and SSE endpoints over the synchronized state and the view machine."""

import asyncio
import json

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .backend import BackendError
from .config import HEARTBEAT_INTERVAL_S
from .models import ActiveTab

router = APIRouter()

KEEPALIVE_S = HEARTBEAT_INTERVAL_S


def build_state(app) -> dict:
    sync, view, window = app.state.sync, app.state.view, app.state.window
    snap = sync.store.current
    return {
        "snapshot": snap.model_dump(mode="json", by_alias=True) if snap is not None else None,
        "sync": sync.status(),
        "view": view.as_dict(),
        "window": window.as_dict() if hasattr(window, "as_dict") else None,
    }


@router.get("/api/state")
async def state(request: Request):
    return JSONResponse(content=build_state(request.app))


@router.get("/api/state/version")
async def state_version(request: Request):
    return {"version": request.app.state.sync.store.version}


async def state_events(app, is_disconnected, keepalive: float = KEEPALIVE_S):
    """Yield the full state as an SSE event now and after every change.

    With no change for ``keepalive`` seconds the state is sent anyway, so
    heartbeat age and staleness keep moving while the backend is silent.
    """
    changed = asyncio.Event()
    removers = [app.state.sync.add_listener(changed.set),
                app.state.view.add_listener(changed.set)]
    try:
        yield f"data: {json.dumps(build_state(app))}\n\n"
        while not await is_disconnected():
            try:
                await asyncio.wait_for(changed.wait(), timeout=keepalive)
            except asyncio.TimeoutError:
                pass
            changed.clear()
            yield f"data: {json.dumps(build_state(app))}\n\n"
    finally:
        for remove in removers:
            remove()


@router.get("/api/stream")
async def stream(request: Request):
    return StreamingResponse(
        state_events(request.app, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/api/projects")
async def projects(request: Request, sortBy: str = "cost", order: str = "desc",
                   search: str | None = None):
    snap = request.app.state.sync.store.current
    if snap is None:
        return []
    try:
        rows = snap.project_list(sortBy, descending=(order != "asc"), search=search)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [p.model_dump(mode="json", by_alias=True) for p in rows]


@router.get("/api/daily")
async def daily(request: Request, startDate: str | None = None, endDate: str | None = None):
    sync = request.app.state.sync
    try:
        days = await sync.fetch_daily_usage(startDate, endDate)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return [d.model_dump(mode="json", by_alias=True) for d in days]


@router.get("/api/data-directory")
async def data_directory(request: Request):
    sync = request.app.state.sync
    try:
        exists = await sync.check_data_directory()
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"exists": exists}


@router.post("/api/refresh")
async def refresh(request: Request):
    sync = request.app.state.sync
    await sync.full_refetch()
    return sync.status()


# ── View commands ──

@router.post("/api/view/cycle")
async def view_cycle(request: Request):
    request.app.state.view.cycle()
    return request.app.state.view.as_dict()


@router.post("/api/view/restore")
async def view_restore(request: Request):
    request.app.state.view.restore()
    return request.app.state.view.as_dict()


@router.post("/api/view/pointer-enter")
async def view_pointer_enter(request: Request):
    request.app.state.view.pointer_enter()
    return request.app.state.view.as_dict()


@router.post("/api/view/pointer-leave")
async def view_pointer_leave(request: Request):
    request.app.state.view.pointer_leave()
    return request.app.state.view.as_dict()


@router.post("/api/view/tab")
async def view_tab(request: Request, tab: str | None = None):
    view = request.app.state.view
    if tab is None:
        view.toggle_tab()
    else:
        try:
            view.set_tab(ActiveTab(tab))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown tab: {tab}")
    return view.as_dict()


@router.post("/api/view/pin")
async def view_pin(request: Request):
    request.app.state.view.toggle_always_on_top()
    return request.app.state.view.as_dict()


@router.post("/api/view/minimize")
async def view_minimize(request: Request):
    request.app.state.view.minimize()
    return request.app.state.view.as_dict()


@router.post("/api/view/maximize")
async def view_maximize(request: Request):
    request.app.state.view.toggle_maximize()
    return request.app.state.view.as_dict()


@router.post("/api/view/resized")
async def view_resized(request: Request):
    view = request.app.state.view
    view.on_window_resized()
    await view.drain()
    return view.as_dict()


@router.post("/api/view/close")
async def view_close(request: Request):
    view = request.app.state.view
    view.close_window()
    await view.drain()
    return view.as_dict()
