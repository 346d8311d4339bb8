"""
Health check response model
"""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    Health check response

    Attributes:
        status: Service health status
        service: Service name
        version: API version
        database: Whether the target database answered a ping
    """
    status: str = Field(..., description="Health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="API version")
    database: bool = Field(..., description="Target database reachable")
