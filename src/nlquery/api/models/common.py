"""
Common API models used across different endpoints.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

class APIError(BaseModel):
    """Error body returned by every endpoint."""
    error: str = Field(..., description="Error message")
    details: Optional[List[str]] = Field(None, description="Validation messages, when the failure came from validation")
    generated_query: Optional[str] = Field(None, alias="generatedQuery", description="Offending generated query, when there is one")

    class Config:
        populate_by_name = True

class HealthStatus(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    uptime: float = Field(..., description="Uptime in seconds")
    dependencies: Dict[str, str] = Field(..., description="Status of external dependencies")
