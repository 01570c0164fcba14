"""Standard error response schema."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    detail: str
    code: str = "error"
    details: Optional[Any] = None
