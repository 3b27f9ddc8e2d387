"""
Pydantic models for API request/response schemas.

These are kept separate from the pipeline types so the wire format can change
without touching the pipeline.
"""
