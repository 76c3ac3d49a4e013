import argparse
import asyncio
import base64
from pathlib import Path
from typing import List, Optional

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client


async def run(mode: str, *, document: Optional[Path], questions: List[str]):
    """
    Run MCP client requests against a spawned local server.

    Example:
        >>> asyncio.run(run("analyze", document=Path("Property Agreement.pdf"), questions=[]))
    """
    # Spawn MCP server as a subprocess over stdio
    server = StdioServerParameters(
        command="python",
        args=["src/run_mcp.py", "--mode", "server"]
    )
    async with stdio_client(server) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()

            if mode == "analyze":
                if not document:
                    raise ValueError("document is required for mode=analyze")
                submitted = await session.call_tool(
                    "submit_contract",
                    {
                        "filename": document.name,
                        "content_base64": base64.b64encode(document.read_bytes()).decode("ascii"),
                    }
                )
                print(submitted)
                contract_id = submitted.structuredContent.get("id") if submitted.structuredContent else None
                if contract_id:
                    result = await session.call_tool("wait_for_contract", {"contract_id": contract_id})
                    print(result)
                return

            if not questions:
                raise ValueError("at least one --ask is required for mode=ask")
            session_id = None
            for question in questions:
                args = {"question": question}
                if session_id:
                    args["session_id"] = session_id
                result = await session.call_tool("ask_question", args)
                print(result)
                if result.structuredContent:
                    session_id = result.structuredContent.get("session_id")


def main():
    """
    CLI entry for the MCP client.
    """
    parser = argparse.ArgumentParser(description="MCP client runner")
    parser.add_argument("--mode", choices=["analyze", "ask"], required=True)
    parser.add_argument("--document", type=Path)
    parser.add_argument("--ask", dest="questions", action="append", default=[])
    args = parser.parse_args()

    asyncio.run(
        run(
            args.mode,
            document=args.document,
            questions=args.questions,
        )
    )


if __name__ == "__main__":
    main()
