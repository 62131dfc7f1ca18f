#!/usr/bin/env python
"""
Run the lsps1client API server
"""
import os
import uvicorn
from lsps1client.cli.logger import LoggerSetup
from lsps1client.settings import ClientSettings


def main():
    # Configure logging
    log_level = ClientSettings().log_level
    LoggerSetup(log_level).setup_logging()

    # Get port from environment or use default
    port = int(os.environ.get("PORT", "8000"))

    # Run FastAPI with Uvicorn
    uvicorn.run(
        "lsps1client.api.app:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get("RELOAD", "") == "1",
        log_level=log_level.value.lower()
    )


if __name__ == "__main__":
    main()
