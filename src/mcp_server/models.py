# HTTP response models for the non-MCP endpoints

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    active_sessions: int
