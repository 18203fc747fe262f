"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import exams

router = APIRouter()

router.include_router(exams.router, prefix="/exams", tags=["Exams"])
