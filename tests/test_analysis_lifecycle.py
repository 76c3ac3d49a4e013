import asyncio

import pytest

from agents.clause_analyzer import SampleClauseAnalyzer
from audit.audit_logger import AuditLogger
from configs.policy.analysis_policy_loader import AnalysisPolicy
from domain.contract import FailureKind
from domain.errors import ContractNotFound, InvalidSubmission
from domain.models import ClauseFinding, ContractStatus, RiskLevel
from lifecycle.analysis_lifecycle_manager import AnalysisLifecycleManager


PDF = b"%PDF-1.4 sample agreement"


class StaticAnalyzer:
    def __init__(self, findings, delay=0.0):
        self.findings = findings
        self.delay = delay
        self.calls = 0

    async def analyze(self, document):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.findings)


class FailingAnalyzer:
    async def analyze(self, document):
        raise RuntimeError("parser crashed")


class GarbageAnalyzer:
    async def analyze(self, document):
        return [{"id": "1", "title": "not a finding"}]


class UpstreamTimeoutAnalyzer:
    async def analyze(self, document):
        raise TimeoutError("upstream OCR service timed out")


def make_manager(analyzer=None, **kwargs):
    analyzer = analyzer or SampleClauseAnalyzer(delay_seconds=0)
    return AnalysisLifecycleManager(analyzer, AnalysisPolicy(), **kwargs)


def test_submit_returns_analyzing_then_completes():
    async def scenario():
        manager = make_manager(SampleClauseAnalyzer(delay_seconds=0.01))
        contract = await manager.submit(PDF, "Property Agreement.pdf")

        assert contract.status == ContractStatus.ANALYZING
        assert contract.category == "Real Estate"
        assert manager.risk_categories(contract.id) is None

        done = await manager.wait_for_result(contract.id, timeout=5)
        return manager, done

    manager, done = asyncio.run(scenario())

    assert done.status == ContractStatus.COMPLETED
    assert done.overall_risk_score == 56
    assert len(done.findings) == 5
    assert manager.get(done.id) == done
    assert manager.risk_label(done.id) == "Medium Risk"
    assert [c.score for c in manager.risk_categories(done.id)] == [100, 35, 55, 55]


def test_zero_findings_completes_with_zero_score():
    async def scenario():
        manager = make_manager(StaticAnalyzer([]))
        contract = await manager.submit(PDF, "lease.pdf")
        return manager, await manager.wait_for_result(contract.id, timeout=5)

    manager, done = asyncio.run(scenario())

    assert done.status == ContractStatus.COMPLETED
    assert done.overall_risk_score == 0
    assert done.findings == ()
    assert done.category == "General Contract"
    assert all(c.score == 0 for c in manager.risk_categories(done.id))


def test_analyzer_timeout_fails_contract():
    async def scenario():
        manager = make_manager(StaticAnalyzer([], delay=10), timeout_seconds=0.05)
        contract = await manager.submit(PDF, "slow.pdf")
        return await manager.wait_for_result(contract.id, timeout=5)

    done = asyncio.run(scenario())

    assert done.status == ContractStatus.FAILED
    assert done.failure.kind == FailureKind.ANALYSIS_TIMEOUT
    assert done.findings is None
    assert done.overall_risk_score is None


def test_analyzer_error_is_recorded_not_raised():
    async def scenario():
        manager = make_manager(FailingAnalyzer())
        contract = await manager.submit(PDF, "broken.pdf")
        return await manager.wait_for_result(contract.id, timeout=5)

    done = asyncio.run(scenario())

    assert done.status == ContractStatus.FAILED
    assert done.failure.kind == FailureKind.ANALYSIS_FAILURE
    assert "parser crashed" in done.failure.detail


def test_malformed_analyzer_output_fails_contract():
    async def scenario():
        manager = make_manager(GarbageAnalyzer())
        contract = await manager.submit(PDF, "odd.pdf")
        return await manager.wait_for_result(contract.id, timeout=5)

    done = asyncio.run(scenario())

    assert done.status == ContractStatus.FAILED
    assert "ClauseFinding" in done.failure.detail


@pytest.mark.parametrize(
    "content, filename",
    [
        (b"", "empty.pdf"),
        (PDF, "   "),
        (PDF, None),
        (PDF, "spreadsheet.xlsx"),
        (PDF, "no_extension"),
    ],
)
def test_invalid_submissions_create_no_contract(content, filename):
    async def scenario():
        manager = make_manager()
        with pytest.raises(InvalidSubmission):
            await manager.submit(content, filename)
        return manager

    manager = asyncio.run(scenario())
    assert manager.list_contracts() == []


def test_submit_from_path(tmp_path):
    doc = tmp_path / "Property Agreement.docx"
    doc.write_bytes(b"agreement text")

    async def scenario():
        manager = make_manager()
        contract = await manager.submit(doc)
        await manager.wait_for_result(contract.id, timeout=5)
        with pytest.raises(InvalidSubmission):
            await manager.submit(tmp_path / "missing.pdf")
        return contract

    contract = asyncio.run(scenario())
    assert contract.name == "Property Agreement.docx"


def test_subscribers_are_notified_once_per_terminal_state():
    sync_seen = []
    async_seen = []

    async def scenario():
        manager = make_manager()
        notified = asyncio.Event()

        async def on_done(contract):
            async_seen.append(contract.status)
            notified.set()

        manager.subscribe(sync_seen.append)
        manager.subscribe(on_done)

        contract = await manager.submit(PDF, "lease.pdf")
        await asyncio.wait_for(notified.wait(), timeout=5)
        return contract

    contract = asyncio.run(scenario())

    assert [c.id for c in sync_seen] == [contract.id]
    assert sync_seen[0].status == ContractStatus.COMPLETED
    assert async_seen == [ContractStatus.COMPLETED]


def test_failing_subscriber_does_not_break_others():
    seen = []

    def broken(contract):
        raise ValueError("subscriber bug")

    async def scenario():
        manager = make_manager()
        manager.subscribe(broken)
        manager.subscribe(seen.append)
        contract = await manager.submit(PDF, "lease.pdf")
        await manager.wait_for_result(contract.id, timeout=5)
        await asyncio.sleep(0)

    asyncio.run(scenario())
    assert len(seen) == 1


def test_unsubscribe():
    seen = []

    async def scenario():
        manager = make_manager()
        unsubscribe = manager.subscribe(seen.append)
        unsubscribe()
        contract = await manager.submit(PDF, "lease.pdf")
        await manager.wait_for_result(contract.id, timeout=5)
        await asyncio.sleep(0)

    asyncio.run(scenario())
    assert seen == []


def test_discard_cancels_analysis_and_drops_result():
    seen = []

    async def scenario():
        analyzer = StaticAnalyzer([], delay=10)
        manager = make_manager(analyzer)
        manager.subscribe(seen.append)

        contract = await manager.submit(PDF, "lease.pdf")
        waiter = asyncio.create_task(manager.wait_for_result(contract.id, timeout=5))
        await asyncio.sleep(0)

        discarded = manager.discard(contract.id)
        assert discarded.id == contract.id

        with pytest.raises(ContractNotFound):
            await waiter
        with pytest.raises(ContractNotFound):
            manager.get(contract.id)

        await asyncio.sleep(0.01)
        return manager

    manager = asyncio.run(scenario())

    assert seen == []
    assert manager.list_contracts() == []


def test_unknown_contract():
    manager = make_manager()

    with pytest.raises(ContractNotFound):
        manager.get("missing")
    with pytest.raises(ContractNotFound):
        manager.discard("missing")


def test_list_contracts_newest_first():
    async def scenario():
        manager = make_manager()
        first = await manager.submit(PDF, "first.pdf")
        second = await manager.submit(PDF, "second.pdf")
        await manager.wait_for_result(first.id, timeout=5)
        await manager.wait_for_result(second.id, timeout=5)
        return manager

    manager = asyncio.run(scenario())
    assert [c.name for c in manager.list_contracts()] == ["second.pdf", "first.pdf"]


def test_reanalyze_creates_linked_contract():
    async def scenario():
        manager = make_manager()
        original = await manager.submit(PDF, "lease.pdf")
        original = await manager.wait_for_result(original.id, timeout=5)

        revision = await manager.reanalyze(original.id)
        revision = await manager.wait_for_result(revision.id, timeout=5)
        return manager, original, revision

    manager, original, revision = asyncio.run(scenario())

    assert revision.id != original.id
    assert revision.revision_of == original.id
    assert revision.document_checksum == original.document_checksum
    assert manager.get(original.id) == original


def test_one_analyzer_call_per_contract():
    finding = ClauseFinding(
        id="1",
        title="Payment Schedule Clause",
        quoted_text="...",
        risk_level=RiskLevel.HIGH,
        explanation="...",
        recommendation="...",
    )
    analyzer = StaticAnalyzer([finding])

    async def scenario():
        manager = make_manager(analyzer)
        contract = await manager.submit(PDF, "lease.pdf")
        await manager.wait_for_result(contract.id, timeout=5)
        await manager.wait_for_result(contract.id, timeout=5)
        return await manager.wait_for_result(contract.id)

    done = asyncio.run(scenario())

    assert analyzer.calls == 1
    assert done.overall_risk_score == 100


def test_audit_trail(tmp_path):
    audit = AuditLogger(tmp_path / "audit")

    async def scenario():
        manager = make_manager(audit=audit)
        contract = await manager.submit(PDF, "Property Agreement.pdf")
        await manager.wait_for_result(contract.id, timeout=5)
        manager.discard(contract.id)
        return contract

    contract = asyncio.run(scenario())

    submitted = audit.read("contract_submitted")
    completed = audit.read("analysis_completed")
    discarded = audit.read("contract_discarded")

    assert len(submitted) == 1 and submitted[0]["payload"]["status"] == "submitted"
    assert completed[0]["payload"]["contract_id"] == contract.id
    assert completed[0]["payload"]["overall_risk_score"] == 56
    assert completed[0]["payload"]["policy_version"] == "2025.01"
    assert len(discarded) == 1


def test_shutdown_releases_waiters():
    seen = []

    async def scenario():
        manager = make_manager(StaticAnalyzer([], delay=10))
        manager.subscribe(seen.append)
        contract = await manager.submit(PDF, "lease.pdf")
        waiter = asyncio.create_task(manager.wait_for_result(contract.id))
        await asyncio.sleep(0)

        await manager.shutdown()
        done, _ = await asyncio.wait({waiter}, timeout=1.0)
        assert waiter in done
        return waiter.result()

    contract = asyncio.run(scenario())

    assert contract.status == ContractStatus.FAILED
    assert contract.failure.kind == FailureKind.ANALYSIS_FAILURE
    assert contract.findings is None
    assert [c.id for c in seen] == [contract.id]


def test_shutdown_before_analysis_starts():
    async def scenario():
        manager = make_manager(StaticAnalyzer([], delay=10))
        contract = await manager.submit(PDF, "lease.pdf")
        # no yield: the analysis task has not run a single step
        await manager.shutdown()
        return await manager.wait_for_result(contract.id, timeout=1.0)

    contract = asyncio.run(scenario())
    assert contract.status == ContractStatus.FAILED


def test_analyzer_timeout_error_is_a_failure_not_a_timeout():
    async def scenario():
        manager = make_manager(UpstreamTimeoutAnalyzer(), timeout_seconds=5)
        contract = await manager.submit(PDF, "lease.pdf")
        return await manager.wait_for_result(contract.id, timeout=5)

    done = asyncio.run(scenario())

    assert done.status == ContractStatus.FAILED
    assert done.failure.kind == FailureKind.ANALYSIS_FAILURE
    assert "upstream OCR service timed out" in done.failure.detail


def test_result_futures_are_released_after_completion():
    async def scenario():
        manager = make_manager()
        contract = await manager.submit(PDF, "lease.pdf")
        await manager.wait_for_result(contract.id, timeout=5)
        again = await manager.wait_for_result(contract.id)
        return manager, again

    manager, again = asyncio.run(scenario())

    assert again.status == ContractStatus.COMPLETED
    assert manager._results == {}
    assert manager._tasks == {}


def test_timeout_must_be_positive():
    with pytest.raises(ValueError):
        make_manager(timeout_seconds=0)
