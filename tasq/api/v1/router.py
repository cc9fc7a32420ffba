from fastapi import APIRouter

from tasq.api.v1.endpoints import notifications, tasks, health

router = APIRouter(prefix="/api/v1")

router.include_router(notifications.router)
router.include_router(tasks.router)
router.include_router(health.router)
