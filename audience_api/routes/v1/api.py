from fastapi import APIRouter

from audience_api.projects.router import router as projects_router
from audience_api.registry.router import router as stages_router
from audience_api.drafts.router import router as drafts_router
from audience_api.generation.router import router as generation_router
from audience_api.approvals.router import router as approvals_router
from audience_api.gate.router import router as gate_router
from audience_api.translation.router import router as translation_router
from audience_api.audit.router import router as audit_router

api_router = APIRouter()

api_router.include_router(projects_router)
api_router.include_router(stages_router)
api_router.include_router(drafts_router)
api_router.include_router(generation_router)
api_router.include_router(approvals_router)
api_router.include_router(gate_router)
api_router.include_router(translation_router)
api_router.include_router(audit_router)
