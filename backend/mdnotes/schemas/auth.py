"""Request/response bodies of the /auth endpoints and the health probe."""

from pydantic import BaseModel, Field, field_validator


class LoginRequest(BaseModel):
    password: str = Field(default="")

    @field_validator("password", mode="before")
    @classmethod
    def null_is_empty_string(cls, v):
        return "" if v is None else v


class OkResponse(BaseModel):
    ok: bool = True


class SessionStatusResponse(BaseModel):
    authenticated: bool


class HealthResponse(BaseModel):
    """
    GET /health: process liveness plus database reachability.

    Used by container health checks; requires no session.
    """
    status: str = Field(description="ok or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float
