from fastapi import APIRouter

from skill_loop.api.routes import cron, events, health, journeys, phases

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(journeys.router, prefix="/journeys", tags=["journeys"])
api_router.include_router(phases.router, prefix="/phases", tags=["phases"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
