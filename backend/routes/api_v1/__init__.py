"""API v1: documents and predictions endpoints."""

from fastapi import APIRouter

from .documents import router as documents_router
from .predictions import router as predictions_router

router = APIRouter(prefix="/api/v1", tags=["api_v1"])
router.include_router(documents_router)
router.include_router(predictions_router)

api_v1_router = router
