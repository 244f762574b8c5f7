#!/usr/bin/env python3
"""
kubegate server entry point.
"""

import uvicorn
from dotenv import load_dotenv

# Environment first: settings are read from it.
load_dotenv()

from kubegate.config import get_settings  # noqa: E402
from kubegate.core.logging import setup_logging  # noqa: E402

settings = get_settings()
# Use our own logging setup rather than uvicorn's default log_config.
setup_logging(settings)

if __name__ == "__main__":
    uvicorn.run(
        "kubegate.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.is_debug,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
