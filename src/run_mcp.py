import argparse
import asyncio
from pathlib import Path

from client.mcp_client import run as run_client
from mcp_server.mcp_server import mcp


def main():
    """
    Entry point for running MCP server or client.

    Example:
        >>> # Server
        >>> # python src/run_mcp.py --mode server
        >>> # Client
        >>> # python src/run_mcp.py --mode analyze --document "Property Agreement.pdf"
        >>> # python src/run_mcp.py --mode ask --ask "What is RERA?"
    """
    parser = argparse.ArgumentParser(description="MCP server/client entry")
    parser.add_argument("--mode", choices=["server", "analyze", "ask"], default="server")
    parser.add_argument("--document", type=Path)
    parser.add_argument("--ask", dest="questions", action="append", default=[])
    args = parser.parse_args()

    if args.mode == "server":
        mcp.run()
        return

    asyncio.run(
        run_client(
            args.mode,
            document=args.document,
            questions=args.questions,
        )
    )


if __name__ == "__main__":
    main()
