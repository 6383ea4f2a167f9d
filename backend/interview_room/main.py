import asyncio
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import QA_MODE, ProviderSettings
from interview_room.api.ws_room import router as room_ws_router
from interview_room.room.registry import room_registry
from interview_room.schemas import HealthResponse
from interview_room.system_metrics import get_metrics_snapshot

app = FastAPI(title="Interview Room")
logger = logging.getLogger("interview_room.main")

ROOM_CLEANUP_TTL_SEC = max(60, int(os.getenv("ROOM_CLEANUP_TTL_SEC", "1800")))
ROOM_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("ROOM_CLEANUP_INTERVAL_SEC", "120")))
_room_cleanup_task: asyncio.Task | None = None


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.on_event("startup")
async def startup_banner():
    global _room_cleanup_task
    if QA_MODE:
        logger.info("[SYSTEM] QA_MODE ENABLED")
    logger.info("[SYSTEM] CORS allow_origins=%s", _allowed_origins)
    missing = ProviderSettings.from_env().missing_required()
    if missing:
        logger.warning("[SYSTEM] voice provider not configured | missing=%s", ",".join(missing))

    async def _room_cleanup_loop():
        while True:
            await asyncio.sleep(ROOM_CLEANUP_INTERVAL_SEC)
            removed = room_registry.cleanup_inactive(ROOM_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive rooms=%s", removed)

    _room_cleanup_task = asyncio.create_task(_room_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _room_cleanup_task
    if _room_cleanup_task is not None:
        _room_cleanup_task.cancel()
        try:
            await _room_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _room_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/health", response_model=HealthResponse)
async def health():
    missing = ProviderSettings.from_env().missing_required()
    return HealthResponse(status="ok", provider_configured=not missing, missing=missing)


@app.get("/metrics")
def metrics_route():
    return get_metrics_snapshot(extra={"room_cleanup_ttl_sec": ROOM_CLEANUP_TTL_SEC})


app.include_router(room_ws_router)
