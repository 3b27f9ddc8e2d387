"""
FastAPI application layer for the natural-language query pipeline.

Exposes query generation, validated execution and the combined pipeline over
HTTP JSON endpoints.
"""
