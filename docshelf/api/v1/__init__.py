"""V1 API router aggregation."""

from fastapi import APIRouter

from docshelf.api.v1.characters import assignments_router
from docshelf.api.v1.characters import router as characters_router
from docshelf.api.v1.documents import router as documents_router
from docshelf.api.v1.workspace import router as workspace_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(documents_router)
v1_router.include_router(characters_router)
v1_router.include_router(assignments_router)
v1_router.include_router(workspace_router)
