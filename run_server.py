#!/usr/bin/env python3
"""
Development server launcher for the natural-language query API.

For production, run the ASGI app (nlquery.api.main:app) under a proper
server deployment.
"""

import os
import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    print("Starting Natural Language Query API Development Server")
    print(f"Server will be available at: http://localhost:{port}")
    print(f"API documentation at: http://localhost:{port}/docs")
    print("\n" + "="*50 + "\n")

    uvicorn.run(
        "nlquery.api.main:app",
        host="0.0.0.0",
        port=port,
        reload=True,     # Auto-reload on code changes (development only)
        reload_dirs=["src"],
        log_level="info"
    )
