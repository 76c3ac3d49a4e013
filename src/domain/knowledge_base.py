from typing import Dict

from pydantic import Field, field_validator, model_validator

from domain.models import StrictBaseModel


class KnowledgeEntry(StrictBaseModel):
    """
    One row of the response table: any keyword hit selects `answer`.

    Keywords are case-folded on construction so matching only has to fold
    the question.
    """

    name: str
    keywords: tuple[str, ...] = Field(min_length=1)
    answer: str = Field(min_length=1)

    @field_validator("keywords")
    @classmethod
    def _normalize_keywords(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(k.strip().casefold() for k in value if k and k.strip())
        if not cleaned:
            raise ValueError("keywords must contain at least one non-blank keyword")
        return cleaned


class KnowledgeBase(StrictBaseModel):
    """
    Ordered response table plus the designated default answer.

    `entries` order is the tie-break priority: first match wins.
    """

    version: str = "unversioned"
    entries: tuple[KnowledgeEntry, ...] = ()
    default_answer: str = Field(min_length=1)
    suggested_questions: Dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _unique_names(self) -> "KnowledgeBase":
        names = [e.name for e in self.entries]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate knowledge base entry names: {names}")
        return self
