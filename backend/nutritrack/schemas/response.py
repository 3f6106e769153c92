"""Generic API response schemas"""

from pydantic import BaseModel, Field
from typing import Optional, Any
from nutritrack.core.clock import utcnow


class APIResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
    data: Optional[Any] = None
    timestamp: str = Field(default_factory=lambda: utcnow().isoformat())


class CountResponse(BaseModel):
    """Count of matching records"""
    count: int
