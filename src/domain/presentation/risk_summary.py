from typing import List, Literal

from pydantic import BaseModel

from domain.models import RiskCategory


class RiskSummary(BaseModel):
    contract_id: str
    verdict: Literal[
        "low_risk",
        "review_recommended",
        "high_risk",
    ]

    risk_label: str
    overall_risk_score: int
    headline: str
    categories: List[RiskCategory]
    critical_clauses: List[str]
    recommended_next_steps: List[str]
