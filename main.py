"""Entry point: load .env, configure logging and serve the MCP tools."""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from ovirt_launcher.server import get_config_manager, mcp, shutdown  # noqa: E402

if __name__ == "__main__":
    # load and validate the config before serving
    get_config_manager()
    try:
        mcp.run(transport=os.getenv("MCP_TRANSPORT", "stdio"))
    finally:
        shutdown()
