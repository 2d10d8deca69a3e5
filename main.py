"""FastAPI entry point for the School Data Portal service."""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, RedirectResponse

from api.deps import PageUnavailable
from config.settings import get_settings
from errors.exceptions import AccessDenied
from models.errors import ErrorCode
from services.middleware import RequestIdLogFilter, RequestIdMiddleware
from services.school_api_client import get_school_api_client
from services.session_store import get_session_store, periodic_cleanup

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdLogFilter())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — start/stop shared resources."""
    client = get_school_api_client()
    await client.start()

    store = get_session_store()
    cleanup_task = asyncio.create_task(
        periodic_cleanup(interval_seconds=settings.session_cleanup_interval)
    )

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    store.close_all()
    await client.close()


app = FastAPI(
    title="School Data Portal",
    description="Role-gated view models and mutations over the school REST API",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)


# ── Exception handlers ─────────────────────────────────────────


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    """Denied pages redirect to the landing route; denied writes answer 403."""
    if request.method == "GET":
        return RedirectResponse(url=exc.redirect_to, status_code=303)
    return JSONResponse(
        status_code=403,
        content={"code": ErrorCode.ACCESS_DENIED.value, "message": exc.reason},
    )


@app.exception_handler(PageUnavailable)
async def page_unavailable_handler(request: Request, exc: PageUnavailable):
    return exc.to_response()


# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.session import router as session_router  # noqa: E402
from api.pages import router as pages_router  # noqa: E402
from api.mutations import router as mutations_router  # noqa: E402

app.include_router(health_router)
app.include_router(session_router)
app.include_router(pages_router)
app.include_router(mutations_router)


if __name__ == "__main__":
    # Sessions live in process memory: always a single worker.
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
    )
