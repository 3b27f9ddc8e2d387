"""
API models for the natural-language query endpoints.

Field names on the wire are camelCase (queryType, generatedQuery) to match
existing clients; the Python attributes are snake_case.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional

# Request Models
class GenerateQueryRequest(BaseModel):
    """Request for generating a query from natural language."""
    query: str = Field(..., min_length=1, description="Natural-language request")
    query_type: str = Field(..., min_length=1, alias="queryType", description="Target dialect: SQL, GraphQL or REST")
    model: Optional[str] = Field(None, description="Model registry name; the configured default is used if omitted")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "query": "List the email of every user created this year",
                "queryType": "SQL",
                "model": "gpt-4o-mini"
            }
        }

class ExecuteQueryRequest(BaseModel):
    """Request for validating and executing an already written query."""
    query: str = Field(..., min_length=1, description="Query text (JSON envelope for REST)")
    query_type: str = Field(..., min_length=1, alias="queryType", description="Dialect of the query")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "query": "{\"method\": \"GET\", \"url\": \"/users\", \"params\": {\"limit\": 10}}",
                "queryType": "REST"
            }
        }

class AIQueryRequest(BaseModel):
    """Request for the full generate -> validate -> execute pipeline."""
    prompt: str = Field(..., min_length=1, description="Natural-language request")
    query_type: str = Field(..., min_length=1, alias="queryType", description="Target dialect: SQL, GraphQL or REST")
    model: Optional[str] = Field(None, description="Model registry name")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "prompt": "Show the titles of the five most recent posts",
                "queryType": "GraphQL"
            }
        }

# Response Models
class GenerateQueryResponse(BaseModel):
    generated_query: str = Field(..., alias="generatedQuery")

    class Config:
        populate_by_name = True

class ExecuteQueryResponse(BaseModel):
    result: Any = None

class AIQueryResponse(BaseModel):
    generated_query: str = Field(..., alias="generatedQuery")
    result: Any = None

    class Config:
        populate_by_name = True
