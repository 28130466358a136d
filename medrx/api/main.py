import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medrx.api.middleware import request_context_middleware
from medrx.api.routes.admin import router as admin_router
from medrx.api.routes.appointments import router as appointments_router
from medrx.api.routes.notifications import router as notifications_router
from medrx.api.routes.public import router as public_router
from medrx.api.routes.subscription import router as subscription_router
from medrx.api.routes.voice import router as voice_router
from medrx.core.config import settings
from medrx.core.voice import VoiceSessionRegistry

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-request-id"],
)
app.middleware("http")(request_context_middleware)
app.state.voice_sessions = VoiceSessionRegistry()

app.include_router(subscription_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(voice_router, prefix="/api/v1")
app.include_router(appointments_router, prefix="/api/v1")
app.include_router(public_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.on_event("startup")
async def configure_logging() -> None:
    logging.basicConfig(level=settings.log_level)


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
