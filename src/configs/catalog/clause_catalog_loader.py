from pathlib import Path
from typing import List

import yaml
from pydantic import ValidationError

from domain.models import ClauseFinding
from utils.schema_factory import build_model

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "clause_catalog.yaml"


def load_clause_catalog(
    path: Path = DEFAULT_CATALOG_PATH,
    *,
    strict: bool = True,
) -> List[ClauseFinding]:
    """
    Load the static clause findings used by the sample analyzer.

    Example:
        >>> [f.title for f in load_clause_catalog()][:1]
        ['Payment Schedule Clause']
    """
    if not path.exists():
        raise FileNotFoundError(f"Clause catalog file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Clause catalog file is empty or invalid YAML: {path}")

    raw_findings = raw.get("findings") or []
    if not isinstance(raw_findings, list):
        raise ValueError("clause_catalog.findings must be a list")

    try:
        findings = [
            build_model(ClauseFinding, {**item, "id": str(item.get("id", ""))}, strict=strict)
            if isinstance(item, dict)
            else build_model(ClauseFinding, item, strict=strict)
            for item in raw_findings
        ]
    except ValidationError as exc:
        raise ValueError(f"Invalid clause catalog {path}: {exc}") from exc

    ids = [f.id for f in findings]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate clause finding ids in catalog: {ids}")

    return findings
