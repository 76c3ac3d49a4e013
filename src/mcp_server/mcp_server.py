import base64
import binascii
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP

from configs.settings import AppSettings
from domain.errors import InvalidSubmission
from main import LegalLensSystem
from tools.logger import setup_logger

logger = setup_logger("mcp-server")
mcp = FastMCP("legallens")

load_dotenv()


@lru_cache(maxsize=1)
def _build_system() -> LegalLensSystem:
    """
    Build the process-wide system once. All contracts and sessions live in
    this instance for the lifetime of the server.
    """
    return LegalLensSystem(AppSettings.from_env())


def _decode(content_base64: str) -> bytes:
    try:
        return base64.b64decode(content_base64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSubmission(f"content_base64 is not valid base64: {exc}") from exc


@mcp.tool()
async def submit_contract(filename: str, content_base64: str) -> Dict:
    """
    Submit a document for risk analysis. Returns immediately with the
    contract in 'analyzing'.

    Only uploaded bytes are accepted; the server never reads its own files
    on a client's behalf.

    Example:
        >>> await submit_contract("Property Agreement.pdf", content_base64="JVBERi0...")
    """
    system = _build_system()
    contract = await system.lifecycle.submit(_decode(content_base64), filename)

    logger.info(f"Accepted contract {contract.id}: {contract.name}")
    return contract.model_dump(mode="json")


@mcp.tool()
async def get_contract(contract_id: str) -> Dict:
    """
    Current state of a contract, with findings, score and risk categories
    once completed.
    """
    return _build_system().contract_report(contract_id)


@mcp.tool()
async def wait_for_contract(contract_id: str, timeout_seconds: float = 60.0) -> Dict:
    """
    Block until the contract reaches 'completed' or 'failed', then return it.
    """
    system = _build_system()
    await system.lifecycle.wait_for_result(contract_id, timeout=timeout_seconds)
    return system.contract_report(contract_id)


@mcp.tool()
async def list_contracts() -> List[Dict]:
    """
    Recent uploads, newest first.
    """
    system = _build_system()
    return [
        {
            "id": c.id,
            "name": c.name,
            "category": c.category,
            "status": c.status.value,
            "overall_risk_score": c.overall_risk_score,
            "risk_label": system.lifecycle.risk_label(c.id),
            "submitted_at": c.submitted_at.isoformat(),
        }
        for c in system.lifecycle.list_contracts()
    ]


@mcp.tool()
async def discard_contract(contract_id: str) -> Dict:
    contract = _build_system().lifecycle.discard(contract_id)
    return {"id": contract.id, "discarded": True}


@mcp.tool()
async def ask_question(question: str, session_id: Optional[str] = None) -> Dict:
    """
    Ask the legal Q&A assistant. A new session is opened when `session_id`
    is omitted or unknown.

    Example:
        >>> await ask_question("What are my cancellation rights?")
    """
    system = _build_system()
    session = system.conversations.get_or_open(session_id)
    turns = await session.submit_question(question)
    return {
        "session_id": session.id,
        "turns": [t.model_dump(mode="json") for t in turns],
    }


@mcp.tool()
async def suggested_questions() -> Dict[str, List[str]]:
    return _build_system().suggested_questions()


if __name__ == "__main__":
    mcp.run()
