from fastapi import APIRouter

from friendpush.api.v1.health import router as health_router
from friendpush.api.v1.notifications import router as notifications_router
from friendpush.api.v1.visits import router as visits_router

v1_router = APIRouter()

v1_router.include_router(health_router, tags=["Health"])
v1_router.include_router(visits_router, tags=["Visits"])
v1_router.include_router(notifications_router, tags=["Notifications"])
