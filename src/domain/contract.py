from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Set
from uuid import uuid4

from pydantic import Field, model_validator

from domain.errors import InvalidTransition
from domain.models import ClauseFinding, ContractStatus, StrictBaseModel


ALLOWED_TRANSITIONS: Dict[ContractStatus, Set[ContractStatus]] = {
    ContractStatus.SUBMITTED: {ContractStatus.ANALYZING},
    ContractStatus.ANALYZING: {ContractStatus.COMPLETED, ContractStatus.FAILED},
    ContractStatus.COMPLETED: set(),
    ContractStatus.FAILED: set(),
}

TERMINAL_STATUSES = {ContractStatus.COMPLETED, ContractStatus.FAILED}


class FailureKind(str, Enum):
    ANALYSIS_TIMEOUT = "AnalysisTimeout"
    ANALYSIS_FAILURE = "AnalysisFailure"


class AnalysisFailureRecord(StrictBaseModel):
    kind: FailureKind
    detail: str = ""


class Contract(StrictBaseModel):
    """
    An uploaded document tracked through the analysis lifecycle.

    Instances are immutable. Every state change produces a new instance via
    the transition helpers below, which re-run validation so the
    score/findings/failure invariant holds for every stored record.

    Example:
        >>> c = Contract.new(name="lease.pdf", category="General Contract", document_checksum="ab")
        >>> c.start_analysis().status
        <ContractStatus.ANALYZING: 'analyzing'>
    """

    id: str
    name: str
    category: str
    submitted_at: datetime
    status: ContractStatus = ContractStatus.SUBMITTED

    overall_risk_score: Optional[int] = Field(default=None, ge=0, le=100)
    findings: Optional[tuple[ClauseFinding, ...]] = None
    finished_at: Optional[datetime] = None
    failure: Optional[AnalysisFailureRecord] = None

    document_checksum: str
    revision_of: Optional[str] = None

    # =========================================================
    # Invariants
    # =========================================================

    @model_validator(mode="after")
    def _check_result_invariant(self) -> "Contract":
        has_score = self.overall_risk_score is not None
        has_findings = self.findings is not None

        if self.status in (ContractStatus.SUBMITTED, ContractStatus.ANALYZING):
            if has_score or has_findings or self.failure or self.finished_at:
                raise ValueError(
                    f"Contract {self.id} in '{self.status.value}' must not carry results"
                )
        elif self.status == ContractStatus.COMPLETED:
            if not (has_score and has_findings):
                raise ValueError(
                    f"Completed contract {self.id} requires both findings and score"
                )
            if self.failure is not None:
                raise ValueError(f"Completed contract {self.id} cannot carry a failure")
        elif self.status == ContractStatus.FAILED:
            if has_score or has_findings:
                raise ValueError(f"Failed contract {self.id} cannot carry results")
            if self.failure is None:
                raise ValueError(f"Failed contract {self.id} requires a failure reason")

        return self

    # =========================================================
    # Construction
    # =========================================================

    @classmethod
    def new(
        cls,
        *,
        name: str,
        category: str,
        document_checksum: str,
        contract_id: Optional[str] = None,
        revision_of: Optional[str] = None,
    ) -> "Contract":
        return cls(
            id=contract_id or uuid4().hex,
            name=name,
            category=category,
            submitted_at=datetime.now(timezone.utc),
            document_checksum=document_checksum,
            revision_of=revision_of,
        )

    # =========================================================
    # Transitions
    # =========================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def start_analysis(self) -> "Contract":
        return self._transition(ContractStatus.ANALYZING)

    def complete(self, findings, overall_risk_score: int) -> "Contract":
        return self._transition(
            ContractStatus.COMPLETED,
            findings=tuple(findings),
            overall_risk_score=overall_risk_score,
            finished_at=datetime.now(timezone.utc),
        )

    def fail(self, kind: FailureKind, detail: str = "") -> "Contract":
        return self._transition(
            ContractStatus.FAILED,
            failure=AnalysisFailureRecord(kind=kind, detail=detail),
            finished_at=datetime.now(timezone.utc),
        )

    def _transition(self, target: ContractStatus, **changes) -> "Contract":
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Contract {self.id}: '{self.status.value}' -> '{target.value}' is not allowed"
            )
        data = dict(self)
        data.update(changes)
        data["status"] = target
        return Contract(**data)
