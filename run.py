#!/usr/bin/env python3
"""
Task Distribution Service - Development Server Runner
This script sets up the Python path and starts the server
"""

import sys
import os

# Add the 'src' directory to Python path so imports work correctly
project_root = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(project_root, 'src')

if src_path not in sys.path:
    sys.path.insert(0, src_path)


if __name__ == "__main__":
    import uvicorn

    from config.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        reload_dirs=[src_path],
        log_level=settings.log_level.lower(),
    )
