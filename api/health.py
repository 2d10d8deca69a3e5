"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from services.session_store import get_session_store

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    return {"status": "healthy", "sessions": get_session_store().size}
