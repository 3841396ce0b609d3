"""Entry point: ``python -m src.mcp_server`` or the ``vfb3-mcp`` script.

MCP_MODE=http serves the Streamable HTTP gateway on PORT; anything else
(default ``stdio``) speaks MCP over stdin/stdout.
"""

import os

from src.shared.config import Settings
from src.shared.observability.logging import STDIO_MODE_ENV


def main() -> None:
    settings = Settings()
    if settings.mcp_mode == "http":
        from src.mcp_server.main import serve

        serve()
        return

    os.environ[STDIO_MODE_ENV] = "1"
    from src.mcp_server.stdio_server import main as stdio_main

    stdio_main()


if __name__ == "__main__":
    main()
