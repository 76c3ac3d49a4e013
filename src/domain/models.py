from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# -------------------------------------------------------------------
# Base (STRICT)
# -------------------------------------------------------------------

class StrictBaseModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "frozen": True,
    }


# -------------------------------------------------------------------
# Enumerations
# -------------------------------------------------------------------

class RiskLevel(str, Enum):
    """
    Severity of a single clause finding.

    Example:
        >>> RiskLevel.HIGH.value
        'high'
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContractStatus(str, Enum):
    """
    Lifecycle state of a submitted contract.

    Example:
        >>> ContractStatus.ANALYZING.value
        'analyzing'
    """
    SUBMITTED = "submitted"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# -------------------------------------------------------------------
# Clause Finding
# -------------------------------------------------------------------

class ClauseFinding(StrictBaseModel):
    """
    A single identified risk item within a contract.

    `category` is an optional hint from the analyzer. When it does not name a
    configured risk category the aggregator classifies the finding by title.
    """

    id: str
    title: str
    quoted_text: str
    risk_level: RiskLevel
    explanation: str
    recommendation: str
    category: Optional[str] = None


# -------------------------------------------------------------------
# Risk Category (derived, never stored)
# -------------------------------------------------------------------

class RiskCategory(StrictBaseModel):
    name: str
    score: int = Field(ge=0, le=100)
    contributing_issues: tuple[str, ...] = ()
