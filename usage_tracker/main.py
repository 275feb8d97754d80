"""FastAPI app entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .backend import Backend, HttpBackend
from .config import HOST, LOG_LEVEL, PORT, SYNC_STRATEGY, WINDOW
from .sync import SyncController, strategy_from_name
from .viewmode import ViewModeMachine
from .window import BrowserWindow, NullWindow, WindowManager

log = logging.getLogger(__name__)


def create_app(backend: Backend | None = None, window: WindowManager | None = None,
               strategy=None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: first fetch and subscription run in the background so the
        # page can show its loading state right away.
        be = backend or HttpBackend()
        win = window or (NullWindow() if WINDOW == "none" else BrowserWindow())
        sync = SyncController(be, strategy=strategy or strategy_from_name(SYNC_STRATEGY))
        view = ViewModeMachine(win)
        app.state.sync, app.state.view, app.state.window = sync, view, win
        await view.sync_window_state()
        starter = asyncio.ensure_future(sync.start())
        yield
        # Shutdown
        view.close()
        await sync.close()
        if not starter.done():
            starter.cancel()
        await be.aclose()

    app = FastAPI(title="Claude Code Usage Tracker", lifespan=lifespan)

    from .api import router as api_router
    from .dashboard import router as dashboard_router

    app.include_router(api_router)
    app.include_router(dashboard_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


def run():
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
