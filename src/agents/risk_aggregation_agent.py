from __future__ import annotations

from typing import Dict, List, Sequence

from configs.policy.analysis_policy_loader import AnalysisPolicy
from domain.models import ClauseFinding, RiskCategory


def rounded_mean(values: Sequence[int]) -> int:
    """
    Mean of non-negative integers rounded half up, 0 for an empty sequence.

    Integer arithmetic only, so identical inputs give identical output on
    every platform.

    Example:
        >>> rounded_mean([100, 55, 15])
        57
    """
    if not values:
        return 0
    total = sum(values)
    n = len(values)
    return (2 * total + n) // (2 * n)


class RiskAggregationAgent:
    """
    Turns a contract's clause findings into category scores and an overall
    score.

    - contribution per finding comes from the policy weights
    - category score = rounded mean of its findings' contributions
    - overall score = rounded mean across ALL findings, so a sparsely
      populated category does not get extra weight

    Zero findings is a clean contract (score 0), not an error.
    """

    def __init__(self, policy: AnalysisPolicy):
        self.policy = policy
        self._category_names = set(policy.category_names)

    # =========================================================
    # PUBLIC API
    # =========================================================

    def overall_score(self, findings: Sequence[ClauseFinding]) -> int:
        return rounded_mean([self.contribution(f) for f in findings])

    def categorize(self, findings: Sequence[ClauseFinding]) -> List[RiskCategory]:
        """
        Partition findings into the configured categories (declared order).
        Every configured category is returned, empty ones with score 0.
        """
        buckets: Dict[str, List[ClauseFinding]] = {
            name: [] for name in self.policy.category_names
        }
        for finding in findings:
            buckets[self.assign_category(finding)].append(finding)

        return [
            RiskCategory(
                name=name,
                score=rounded_mean([self.contribution(f) for f in members]),
                contributing_issues=tuple(f.title for f in members),
            )
            for name, members in buckets.items()
        ]

    def risk_label(self, score: int) -> str:
        if score >= self.policy.high_band:
            return "High Risk"
        if score >= self.policy.medium_band:
            return "Medium Risk"
        return "Low Risk"

    # =========================================================
    # SCORING COMPONENTS
    # =========================================================

    def contribution(self, finding: ClauseFinding) -> int:
        return self.policy.weights[finding.risk_level]

    def assign_category(self, finding: ClauseFinding) -> str:
        if finding.category in self._category_names:
            return finding.category

        for rule in self.policy.categories:
            if rule.matches(finding.title):
                return rule.name

        return self.policy.fallback_category
