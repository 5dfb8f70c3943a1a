from fastapi import APIRouter

from app.api.v1.endpoints import (
    admin,
    billing,
    feedback,
    manuscripts,
    phases,
    profiles,
    publishing,
    realtime,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(manuscripts.router, prefix="/manuscripts", tags=["manuscripts"])
api_router.include_router(
    phases.router, prefix="/manuscripts/{manuscript_id}/phases", tags=["phases"]
)
api_router.include_router(
    publishing.router, prefix="/manuscripts/{manuscript_id}/publishing", tags=["publishing"]
)
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(feedback.router, prefix="/feedback", tags=["feedback"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
