#!/usr/bin/env python3
"""Run the facility status API with uvicorn."""

import uvicorn

from api.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "api.server:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_config=None,  # api.server configures logging
    )
