#!/usr/bin/env python3
"""
Start script - serves the gateway with uvicorn

The PORT environment variable (set by most hosting platforms) wins over
APP_PORT from settings.
"""
import os

if __name__ == "__main__":
    import uvicorn

    from core.config import settings

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=int(os.getenv("PORT", settings.app_port)),
        log_level=settings.log_level.lower(),
    )
