#!/usr/bin/env python3
"""
Run the tee-sheet API with uvicorn using the settings in ``teesheet.config``.
"""

import uvicorn

from teesheet import config

if __name__ == "__main__":
    uvicorn.run(
        "teesheet.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.API_RELOAD,
        log_level=config.LOG_LEVEL.lower(),
    )
