from medrx.api.routes.admin import router as admin_router
from medrx.api.routes.appointments import router as appointments_router
from medrx.api.routes.notifications import router as notifications_router
from medrx.api.routes.public import router as public_router
from medrx.api.routes.subscription import router as subscription_router
from medrx.api.routes.voice import router as voice_router

__all__ = [
    "admin_router",
    "appointments_router",
    "notifications_router",
    "public_router",
    "subscription_router",
    "voice_router",
]
