from pathlib import Path

import yaml
from pydantic import ValidationError

from domain.knowledge_base import KnowledgeBase, KnowledgeEntry
from tools.logger import setup_logger
from utils.schema_factory import build_model

logger = setup_logger("knowledge-base-loader")

DEFAULT_KNOWLEDGE_BASE_PATH = Path(__file__).resolve().parent / "legal_knowledge_base.yaml"


def load_knowledge_base(
    path: Path = DEFAULT_KNOWLEDGE_BASE_PATH,
    *,
    strict: bool = True,
) -> KnowledgeBase:
    """
    Load the ordered response table from YAML.

    Entry order in the file is preserved as match priority. Loading errors
    are raised here, at configuration time, so the matcher itself never
    fails.

    Example:
        >>> kb = load_knowledge_base()
        >>> [e.name for e in kb.entries][:2]
        ['penalty', 'rera']
    """
    if not path.exists():
        raise FileNotFoundError(f"Knowledge base file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Knowledge base file is empty or invalid YAML: {path}")

    raw_entries = raw.get("entries") or []
    if not isinstance(raw_entries, list):
        raise ValueError("knowledge_base.entries must be a list")

    try:
        entries = tuple(
            build_model(KnowledgeEntry, e, strict=strict) for e in raw_entries
        )
        data = dict(raw)
        data["entries"] = entries
        data["suggested_questions"] = {
            str(group): tuple(questions or [])
            for group, questions in (raw.get("suggested_questions") or {}).items()
        }
        if "version" in data:
            data["version"] = str(data["version"])
        kb = build_model(KnowledgeBase, data, strict=strict)
    except ValidationError as exc:
        raise ValueError(f"Invalid knowledge base {path}: {exc}") from exc

    logger.info(
        "Loaded knowledge base v%s with %d entries", kb.version, len(kb.entries)
    )
    return kb
