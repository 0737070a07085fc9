from fastapi import APIRouter

from sharecal.api.v1 import events, health, reminders


api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(reminders.router, prefix="/reminders", tags=["reminders"])
