"""
FastAPI dependencies for request processing.

Dependencies hand the shared pipeline components to the endpoints.
"""
