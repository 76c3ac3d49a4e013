import asyncio
import base64
import inspect

import pytest

from configs.catalog.clause_catalog_loader import load_clause_catalog
from configs.settings import AppSettings
from domain.errors import ContractNotFound, InvalidSubmission
from main import LegalLensSystem, run_analysis
from mcp_server import mcp_server


def fast_settings(tmp_path=None, **kwargs):
    return AppSettings(
        sample_analysis_delay_seconds=0,
        typing_delay_seconds=0,
        audit_log_dir=tmp_path,
        **kwargs,
    )


def test_contract_report_for_completed_contract(tmp_path):
    async def scenario():
        system = LegalLensSystem(fast_settings(tmp_path / "audit"))
        contract = await system.lifecycle.submit(b"%PDF", "Property Agreement.pdf")
        pending = system.contract_report(contract.id)
        await system.lifecycle.wait_for_result(contract.id, timeout=5)
        return pending, system.contract_report(contract.id)

    pending, report = asyncio.run(scenario())

    assert pending["status"] == "analyzing"
    assert "risk_categories" not in pending

    assert report["status"] == "completed"
    assert report["category"] == "Real Estate"
    assert report["overall_risk_score"] == 56
    assert report["risk_label"] == "Medium Risk"
    assert [c["name"] for c in report["risk_categories"]][0] == "Payment Terms"
    assert report["risk_summary"]["verdict"] == "review_recommended"
    assert (tmp_path / "audit" / "analysis_completed.log.jsonl").exists()


def test_suggested_questions():
    system = LegalLensSystem(fast_settings())

    suggestions = system.suggested_questions()

    assert set(suggestions) == {"contract", "legal"}
    assert all(isinstance(q, str) for q in suggestions["legal"])


def test_run_analysis_with_questions(tmp_path):
    doc = tmp_path / "Property Agreement.pdf"
    doc.write_bytes(b"%PDF-1.4")

    report = asyncio.run(
        run_analysis(doc, ["What are my cancellation rights?"], fast_settings())
    )

    assert report["status"] == "completed"
    assert len(report["findings"]) == len(load_clause_catalog())
    assert [t["role"] for t in report["conversation"]] == ["user", "assistant"]


def test_run_analysis_rejects_unsupported_document(tmp_path):
    doc = tmp_path / "budget.xlsx"
    doc.write_bytes(b"data")

    with pytest.raises(InvalidSubmission):
        asyncio.run(run_analysis(doc, [], fast_settings()))


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("LEGALLENS_ANALYSIS_TIMEOUT", "12.5")
    monkeypatch.setenv("LEGALLENS_BUSY_POLICY", "REJECT")
    monkeypatch.setenv("LEGALLENS_TYPING_DELAY", "0")

    settings = AppSettings.from_env()

    assert settings.analysis_timeout_seconds == 12.5
    assert settings.busy_policy == "reject"
    assert settings.typing_delay_seconds == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"analysis_timeout_seconds": 0},
        {"typing_delay_seconds": -1},
        {"busy_policy": "drop"},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        AppSettings(**kwargs)


# =========================================================
# MCP tools
# =========================================================

@pytest.fixture
def fresh_server(monkeypatch):
    monkeypatch.setenv("LEGALLENS_SAMPLE_ANALYSIS_DELAY", "0")
    monkeypatch.setenv("LEGALLENS_TYPING_DELAY", "0")
    monkeypatch.delenv("LEGALLENS_AUDIT_DIR", raising=False)
    mcp_server._build_system.cache_clear()
    yield mcp_server
    mcp_server._build_system.cache_clear()


def test_mcp_tools_submit_and_query(fresh_server):
    async def scenario():
        submitted = await fresh_server.submit_contract(
            "Property Agreement.pdf",
            content_base64=base64.b64encode(b"%PDF-1.4").decode("ascii"),
        )
        done = await fresh_server.wait_for_contract(submitted["id"], timeout_seconds=5)
        listing = await fresh_server.list_contracts()
        answer = await fresh_server.ask_question("What is RERA?")
        follow_up = await fresh_server.ask_question(
            "And stamp duty?", session_id=answer["session_id"]
        )
        discarded = await fresh_server.discard_contract(submitted["id"])
        return submitted, done, listing, answer, follow_up, discarded

    submitted, done, listing, answer, follow_up, discarded = asyncio.run(scenario())

    assert submitted["status"] == "analyzing"
    assert done["status"] == "completed"
    assert done["risk_label"] == "Medium Risk"
    assert listing[0]["id"] == submitted["id"]
    assert len(answer["turns"]) == 2
    assert follow_up["session_id"] == answer["session_id"]
    assert len(follow_up["turns"]) == 4
    assert discarded == {"id": submitted["id"], "discarded": True}


def test_mcp_tools_surface_domain_errors(fresh_server):
    async def scenario():
        with pytest.raises(InvalidSubmission):
            await fresh_server.submit_contract("lease.pdf", content_base64="not base64!")
        with pytest.raises(ContractNotFound):
            await fresh_server.get_contract("missing")

    asyncio.run(scenario())


def test_submit_contract_tool_only_accepts_uploaded_bytes(fresh_server):
    params = inspect.signature(fresh_server.submit_contract).parameters

    assert list(params) == ["filename", "content_base64"]

    with pytest.raises(TypeError):
        asyncio.run(fresh_server.submit_contract("lease.pdf", path="/etc/passwd"))
