from __future__ import annotations

import asyncio
import inspect
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from agents.clause_analyzer import ContractAnalyzer, DocumentRef
from agents.risk_aggregation_agent import RiskAggregationAgent
from audit.audit_logger import AuditLogger
from configs.policy.analysis_policy_loader import AnalysisPolicy
from domain.contract import Contract, FailureKind
from domain.errors import ContractNotFound, InvalidSubmission
from domain.models import ClauseFinding, ContractStatus, RiskCategory
from tools.checksum import calculate_checksum
from tools.logger import setup_logger

logger = setup_logger("analysis-lifecycle")

CompletionCallback = Callable[[Contract], Any]
Transition = Callable[[Contract], Contract]


class AnalysisLifecycleManager:
    """
    Owns every Contract record and drives it through

        submitted -> analyzing -> completed | failed

    RESPONSIBILITY:
    - Validate submissions synchronously (InvalidSubmission)
    - Schedule exactly one analyzer task per contract, bounded by a timeout
    - Record analyzer errors/timeouts on the contract, never raise them
    - Publish terminal contracts to subscribers and waiters
    - DO NOT block the submitting caller

    Must be used from inside a running asyncio event loop.
    """

    def __init__(
        self,
        analyzer: ContractAnalyzer,
        policy: AnalysisPolicy,
        *,
        aggregator: Optional[RiskAggregationAgent] = None,
        timeout_seconds: float = 30.0,
        audit: Optional[AuditLogger] = None,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self.analyzer = analyzer
        self.policy = policy
        self.aggregator = aggregator or RiskAggregationAgent(policy)
        self.timeout_seconds = timeout_seconds
        self.audit = audit

        self._contracts: Dict[str, Contract] = {}
        self._documents: Dict[str, DocumentRef] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._results: Dict[str, asyncio.Future] = {}
        self._subscribers: List[CompletionCallback] = []

    # =========================================================
    # Public API
    # =========================================================

    async def submit(
        self,
        document: Union[bytes, bytearray, os.PathLike],
        filename: Optional[str] = None,
    ) -> Contract:
        """
        Register a document and start its analysis.

        `document` is either the raw bytes or a path to a local file (the
        filename then defaults to the file's name). Returns immediately with
        the contract in `analyzing`.

        Example:
            >>> contract = await manager.submit(b"...", "Property Agreement.pdf")
            >>> contract.status.value
            'analyzing'
        """
        content, filename = self._read_document(document, filename)
        self._validate_submission(content, filename)

        contract = Contract.new(
            name=filename,
            category=self.classify(filename),
            document_checksum=calculate_checksum(content),
        )
        return self._start(contract, content)

    async def reanalyze(self, contract_id: str) -> Contract:
        """
        Analyze a previously submitted document again as a NEW contract.
        The original record is left untouched.

        Submitted bytes are retained for this until the contract is
        discarded; result futures are dropped once a contract is terminal.
        """
        source = self.get(contract_id)
        document = self._documents[contract_id]

        contract = Contract.new(
            name=source.name,
            category=source.category,
            document_checksum=source.document_checksum,
            revision_of=source.id,
        )
        return self._start(contract, document.content)

    def get(self, contract_id: str) -> Contract:
        try:
            return self._contracts[contract_id]
        except KeyError:
            raise ContractNotFound(f"Contract not found: {contract_id}") from None

    def list_contracts(self) -> List[Contract]:
        """Most recent submission first."""
        return list(reversed(list(self._contracts.values())))

    def risk_categories(self, contract_id: str) -> Optional[List[RiskCategory]]:
        """
        Derived at read time from the contract's findings. None until the
        contract has completed.
        """
        contract = self.get(contract_id)
        if contract.status != ContractStatus.COMPLETED:
            return None
        return self.aggregator.categorize(contract.findings)

    def risk_label(self, contract_id: str) -> Optional[str]:
        contract = self.get(contract_id)
        if contract.overall_risk_score is None:
            return None
        return self.aggregator.risk_label(contract.overall_risk_score)

    def subscribe(self, callback: CompletionCallback) -> Callable[[], None]:
        """
        Register a callback invoked once per terminal transition (completed or
        failed). Coroutine functions are awaited. Returns an unsubscribe
        function.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def wait_for_result(
        self,
        contract_id: str,
        timeout: Optional[float] = None,
    ) -> Contract:
        """
        Await the terminal state of a contract.

        Raises ContractNotFound if the contract is (or becomes) discarded.
        """
        contract = self.get(contract_id)
        if contract.is_terminal:
            return contract

        future = self._results[contract_id]
        result = await asyncio.wait_for(asyncio.shield(future), timeout)
        if result is None:
            raise ContractNotFound(f"Contract discarded while waiting: {contract_id}")
        return result

    def discard(self, contract_id: str) -> Contract:
        """
        Forget a contract. An outstanding analyzer task is cancelled on a
        best-effort basis; any result that still arrives is dropped.
        """
        contract = self._contracts.pop(contract_id, None)
        if contract is None:
            raise ContractNotFound(f"Contract not found: {contract_id}")

        self._documents.pop(contract_id, None)

        task = self._tasks.pop(contract_id, None)
        if task is not None and not task.done():
            task.cancel()

        future = self._results.pop(contract_id, None)
        if future is not None and not future.done():
            future.set_result(None)

        logger.info("Discarded contract %s (%s)", contract_id, contract.status.value)
        self._audit("contract_discarded", contract)
        return contract

    async def shutdown(self):
        """
        Cancel every in-flight analysis and wait for the tasks to unwind.
        Contracts still analyzing end as failed, so no waiter is left hanging.
        """
        pending = dict(self._tasks)
        for task in pending.values():
            task.cancel()
        if pending:
            await asyncio.gather(*pending.values(), return_exceptions=True)

        # tasks cancelled before their first step never recorded anything
        for contract_id in pending:
            contract = self._contracts.get(contract_id)
            if contract is not None and not contract.is_terminal:
                updated = self._record(
                    contract_id,
                    lambda c: c.fail(FailureKind.ANALYSIS_FAILURE, "Analysis cancelled"),
                )
                await self._notify(updated)

    def classify(self, filename: str) -> str:
        for rule in self.policy.contract_type_rules:
            if rule.matches(filename):
                return rule.name
        return self.policy.default_contract_type

    # =========================================================
    # Submission
    # =========================================================

    def _read_document(self, document, filename: Optional[str]):
        if isinstance(document, (bytes, bytearray)):
            return bytes(document), filename

        if isinstance(document, os.PathLike):
            path = Path(document)
            if not path.is_file():
                raise InvalidSubmission(f"Document not found: {path}")
            return path.read_bytes(), filename or path.name

        raise InvalidSubmission(
            f"Unsupported document reference type: {type(document).__name__}"
        )

    def _validate_submission(self, content: bytes, filename: Optional[str]):
        if not filename or not filename.strip():
            raise InvalidSubmission("A filename is required")

        if not content:
            raise InvalidSubmission(f"Document '{filename}' is empty")

        suffix = Path(filename.strip()).suffix.lower()
        if suffix not in self.policy.allowed_extensions:
            raise InvalidSubmission(
                f"Unsupported document type '{suffix or filename}'. "
                f"Allowed: {', '.join(self.policy.allowed_extensions)}"
            )

    def _start(self, contract: Contract, content: bytes) -> Contract:
        self._contracts[contract.id] = contract
        self._audit("contract_submitted", contract)

        contract = contract.start_analysis()
        self._contracts[contract.id] = contract

        document = DocumentRef(
            contract_id=contract.id,
            filename=contract.name,
            content=content,
            checksum=contract.document_checksum,
        )
        self._documents[contract.id] = document
        self._results[contract.id] = asyncio.get_running_loop().create_future()
        self._tasks[contract.id] = asyncio.create_task(
            self._run_analysis(document),
            name=f"analysis-{contract.id}",
        )

        logger.info(
            "Contract %s submitted: %s [%s]", contract.id, contract.name, contract.category
        )
        return contract

    # =========================================================
    # Analyzer task
    # =========================================================

    async def _run_analysis(self, document: DocumentRef):
        contract_id = document.contract_id
        try:
            transition = await self._invoke_analyzer(document)
        except asyncio.CancelledError:
            # discard() removes the record first, so only other cancellations
            # (shutdown, loop teardown) are recorded here
            updated = self._record(
                contract_id,
                lambda c: c.fail(FailureKind.ANALYSIS_FAILURE, "Analysis cancelled"),
            )
            if updated is not None:
                await self._notify(updated)
            raise
        finally:
            self._tasks.pop(contract_id, None)

        updated = self._record(contract_id, transition)
        if updated is not None:
            await self._notify(updated)

    async def _invoke_analyzer(self, document: DocumentRef) -> Transition:
        deadline = asyncio.timeout(self.timeout_seconds)
        try:
            async with deadline:
                findings = await self.analyzer.analyze(document)
        except asyncio.CancelledError:
            logger.info("Analysis of %s cancelled", document.contract_id)
            raise
        except Exception as exc:
            # an analyzer's own TimeoutError is a failure, not our deadline
            if isinstance(exc, TimeoutError) and deadline.expired():
                detail = f"Analyzer did not finish within {self.timeout_seconds:g}s"
                return lambda c: c.fail(FailureKind.ANALYSIS_TIMEOUT, detail)
            detail = f"{type(exc).__name__}: {exc}"
            return lambda c: c.fail(FailureKind.ANALYSIS_FAILURE, detail)

        try:
            findings = self._check_findings(findings)
        except TypeError as exc:
            detail = str(exc)
            return lambda c: c.fail(FailureKind.ANALYSIS_FAILURE, detail)

        score = self.aggregator.overall_score(findings)
        return lambda c: c.complete(findings, score)

    def _check_findings(self, findings) -> List[ClauseFinding]:
        if findings is None or isinstance(findings, (str, bytes)):
            raise TypeError(f"Analyzer returned {type(findings).__name__}, expected findings")
        findings = list(findings)
        for f in findings:
            if not isinstance(f, ClauseFinding):
                raise TypeError(
                    f"Analyzer returned {type(f).__name__} instead of ClauseFinding"
                )
        return findings

    def _record(self, contract_id: str, transition: Transition) -> Optional[Contract]:
        current = self._contracts.get(contract_id)
        if current is None:
            logger.info("Late analyzer result for discarded contract %s dropped", contract_id)
            return None

        updated = transition(current)
        self._contracts[contract_id] = updated

        if updated.status == ContractStatus.COMPLETED:
            logger.info(
                "Contract %s completed | Score=%s | Findings=%d",
                contract_id,
                updated.overall_risk_score,
                len(updated.findings),
            )
            self._audit("analysis_completed", updated)
        else:
            logger.warning(
                "Contract %s failed | %s | %s",
                contract_id,
                updated.failure.kind.value,
                updated.failure.detail,
            )
            self._audit("analysis_failed", updated)

        future = self._results.pop(contract_id, None)
        if future is not None and not future.done():
            future.set_result(updated)

        return updated

    async def _notify(self, contract: Contract):
        for callback in list(self._subscribers):
            try:
                result = callback(contract)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Completion subscriber %r failed for contract %s", callback, contract.id
                )

    # =========================================================
    # Audit
    # =========================================================

    def _audit(self, event_type: str, contract: Contract):
        if self.audit is None:
            return

        payload = {
            "contract_id": contract.id,
            "name": contract.name,
            "category": contract.category,
            "status": contract.status.value,
            "document_checksum": contract.document_checksum,
            "revision_of": contract.revision_of,
            **self.policy.audit_metadata(),
        }
        if contract.overall_risk_score is not None:
            payload["overall_risk_score"] = contract.overall_risk_score
            payload["finding_count"] = len(contract.findings)
        if contract.failure is not None:
            payload["failure_kind"] = contract.failure.kind.value
            payload["failure_detail"] = contract.failure.detail

        self.audit.log(event_type, payload)
