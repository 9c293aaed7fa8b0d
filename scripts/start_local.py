#!/usr/bin/env python3
"""
Local Development Startup Script
Starts the listings API and reports which data sources it will use
"""

import logging
import subprocess
import sys
from pathlib import Path

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

PORT = 3001


def describe_sources():
    """Log the upstream chain the service will walk"""
    from listings_backend.config import settings

    if settings.data_provider.lower() == "mock":
        logger.info("DATA_PROVIDER=mock: serving generated listings only")
        return
    if settings.idx_configured:
        logger.info(f"IDX Broker configured at {settings.idx_api_url}")
    if settings.mls_api_configured:
        logger.info(f"MLS relay API configured at {settings.mls_api_url}")
    if not (settings.idx_configured or settings.mls_api_configured):
        logger.warning("No upstream configured. Set IDX_API_KEY/IDX_PARTNER_KEY or MLS_API_URL in .env")
        logger.info("Serving generated mock listings")


def start_backend():
    """Start the FastAPI backend"""
    logger.info("Starting FastAPI backend...")
    return subprocess.call([
        sys.executable, "-m", "uvicorn",
        "listings_backend.main:app",
        "--reload",
        "--port", str(PORT),
        "--host", "0.0.0.0"
    ])


def main():
    """Main function"""
    if not (Path.cwd() / "listings_backend").exists():
        logger.error("Please run this script from the project root directory")
        sys.exit(1)

    describe_sources()
    logger.info(f"API: http://localhost:{PORT}/api/listings")
    logger.info(f"API Docs: http://localhost:{PORT}/docs")
    sys.exit(start_backend())


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(0)
