from typing import List

from agents.risk_aggregation_agent import RiskAggregationAgent
from domain.contract import Contract
from domain.models import ContractStatus, RiskLevel
from domain.presentation.risk_summary import RiskSummary


SEVERITY_ORDER = {RiskLevel.HIGH: 0, RiskLevel.MEDIUM: 1, RiskLevel.LOW: 2}

MAX_CRITICAL_CLAUSES = 5


def build_risk_summary(
    contract: Contract,
    aggregator: RiskAggregationAgent,
) -> RiskSummary:
    """
    Converts a completed Contract into a reader-facing risk summary.

    Principles:
    - The band label follows the policy thresholds (High / Medium / Low Risk)
    - Critical clauses are listed worst first, finding order breaking ties
    - A contract without findings is a clean result, not a failure
    """
    if contract.status != ContractStatus.COMPLETED:
        raise ValueError(
            f"Risk summary needs a completed contract, {contract.id} is '{contract.status.value}'"
        )

    score = contract.overall_risk_score
    label = aggregator.risk_label(score)
    categories = aggregator.categorize(contract.findings)

    # -------------------------------------------------
    # Safety fallback: nothing found
    # -------------------------------------------------
    if not contract.findings:
        return RiskSummary(
            contract_id=contract.id,
            verdict="low_risk",
            risk_label=label,
            overall_risk_score=score,
            headline="No risk findings were identified in this contract.",
            categories=categories,
            critical_clauses=[],
            recommended_next_steps=[
                "No immediate legal action required; retain a copy for records.",
            ],
        )

    # -------------------------------------------------
    # Verdict
    # -------------------------------------------------
    if score >= aggregator.policy.high_band:
        verdict = "high_risk"
        headline = "High risk: several clauses strongly favor the counterparty."
    elif score >= aggregator.policy.medium_band:
        verdict = "review_recommended"
        headline = "Moderate risk: some clauses should be negotiated before signing."
    else:
        verdict = "low_risk"
        headline = "Low risk: clauses are broadly balanced."

    # -------------------------------------------------
    # Critical clauses + next steps
    # -------------------------------------------------
    ranked = sorted(
        enumerate(contract.findings),
        key=lambda pair: (SEVERITY_ORDER[pair[1].risk_level], pair[0]),
    )
    flagged = [f for _, f in ranked if f.risk_level != RiskLevel.LOW]

    critical = [
        f"{f.title}: {f.explanation} (risk level: {f.risk_level.value})"
        for f in flagged[:MAX_CRITICAL_CLAUSES]
    ]

    actions: List[str] = [f.recommendation for f in flagged]
    if not actions:
        actions.append("No immediate legal action required; retain a copy for records.")

    return RiskSummary(
        contract_id=contract.id,
        verdict=verdict,
        risk_label=label,
        overall_risk_score=score,
        headline=headline,
        categories=categories,
        critical_clauses=critical,
        recommended_next_steps=actions,
    )
