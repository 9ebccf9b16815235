"""
Real-time Relay Runner
Run this as a separate process: python run_relay.py
"""

import logging
import sys

import uvicorn

from meetsync import config
from meetsync.realtime.relay import create_relay_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    logger.info(f"🚀 Starting relay on port {config.RELAY_PORT}...")
    try:
        uvicorn.run(create_relay_app(), host=config.RELAY_HOST, port=config.RELAY_PORT)
    except KeyboardInterrupt:
        logger.info("👋 Relay stopped by user")
    except Exception as e:
        logger.error(f"❌ Relay crashed: {e}")
        sys.exit(1)
