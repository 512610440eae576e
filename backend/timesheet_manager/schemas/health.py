"""
Health check response schemas.
"""

from pydantic import BaseModel
from typing import Dict


class HealthResponse(BaseModel):
    """Liveness report: overall status plus one entry per dependency checked."""
    status: str
    version: str
    uptime: str
    checks: Dict[str, str] = {}
