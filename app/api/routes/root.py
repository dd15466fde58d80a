from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Root"])


@router.get("/", response_class=PlainTextResponse)
def hello() -> str:
    """Sample host endpoint served behind the admission gate."""

    return "Hello, world!"
