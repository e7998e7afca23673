"""
Central place to register all API routes
Import and include routers here
"""

from fastapi import APIRouter
from txnlens.api.v1.classification_controller import router as classification_router
from txnlens.api.v1.monitoring_controller import router as monitoring_router
from txnlens.api.v1.model_controller import router as model_router

# Create a combined router
router = APIRouter()

router.include_router(classification_router)
router.include_router(monitoring_router)
router.include_router(model_router)

__all__ = ["router"]
