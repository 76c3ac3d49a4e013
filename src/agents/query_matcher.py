from typing import Optional

from domain.knowledge_base import KnowledgeBase, KnowledgeEntry


def normalize_question(question: str) -> str:
    return (question or "").casefold()


def resolve_entry(question: str, knowledge_base: KnowledgeBase) -> Optional[KnowledgeEntry]:
    """
    Return the first entry (in declared priority order) with a keyword that
    occurs as a substring of the case-folded question, or None.

    Example:
        >>> resolve_entry("What about RERA refund timeline?", kb).name
        'rera'
    """
    text = normalize_question(question)
    for entry in knowledge_base.entries:
        for kw in entry.keywords:
            if kw in text:
                return entry
    return None


def match_answer(question: str, knowledge_base: KnowledgeBase) -> str:
    """
    Route a free-text question to exactly one canned answer.

    A miss is not an error: it yields the knowledge base's default answer.
    Pure function of (question, knowledge_base).
    """
    entry = resolve_entry(question, knowledge_base)
    if entry is None:
        return knowledge_base.default_answer
    return entry.answer
