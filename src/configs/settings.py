from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from configs.catalog.clause_catalog_loader import DEFAULT_CATALOG_PATH
from configs.knowledge_base.knowledge_base_loader import DEFAULT_KNOWLEDGE_BASE_PATH
from configs.policy.analysis_policy_loader import DEFAULT_POLICY_PATH

BUSY_POLICIES = {"queue", "reject"}


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


@dataclass(frozen=True)
class AppSettings:
    """
    Runtime knobs read from the environment (and `.env` when present).

    Policy numbers (weights, categories, bands) live in YAML, not here.
    """

    policy_path: Path = DEFAULT_POLICY_PATH
    policy_override_path: Optional[Path] = None
    knowledge_base_path: Path = DEFAULT_KNOWLEDGE_BASE_PATH
    clause_catalog_path: Path = DEFAULT_CATALOG_PATH

    analysis_timeout_seconds: float = 30.0
    sample_analysis_delay_seconds: float = 4.0
    typing_delay_seconds: float = 2.0
    busy_policy: str = "queue"

    audit_log_dir: Optional[Path] = None
    log_level: int = logging.INFO

    def __post_init__(self):
        if self.analysis_timeout_seconds <= 0:
            raise ValueError("analysis_timeout_seconds must be positive")
        if self.sample_analysis_delay_seconds < 0 or self.typing_delay_seconds < 0:
            raise ValueError("delays must not be negative")
        if self.busy_policy not in BUSY_POLICIES:
            raise ValueError(f"busy_policy must be one of {sorted(BUSY_POLICIES)}")

    @classmethod
    def from_env(cls) -> "AppSettings":
        load_dotenv()
        level_name = os.getenv("LEGALLENS_LOG_LEVEL", "INFO").upper()
        return cls(
            policy_path=Path(os.getenv("LEGALLENS_POLICY_PATH", str(DEFAULT_POLICY_PATH))),
            policy_override_path=_optional_path(os.getenv("LEGALLENS_POLICY_OVERRIDE_PATH")),
            knowledge_base_path=Path(
                os.getenv("LEGALLENS_KNOWLEDGE_BASE_PATH", str(DEFAULT_KNOWLEDGE_BASE_PATH))
            ),
            clause_catalog_path=Path(
                os.getenv("LEGALLENS_CLAUSE_CATALOG_PATH", str(DEFAULT_CATALOG_PATH))
            ),
            analysis_timeout_seconds=float(os.getenv("LEGALLENS_ANALYSIS_TIMEOUT", "30")),
            sample_analysis_delay_seconds=float(os.getenv("LEGALLENS_SAMPLE_ANALYSIS_DELAY", "4")),
            typing_delay_seconds=float(os.getenv("LEGALLENS_TYPING_DELAY", "2")),
            busy_policy=os.getenv("LEGALLENS_BUSY_POLICY", "queue").lower(),
            audit_log_dir=_optional_path(os.getenv("LEGALLENS_AUDIT_DIR")),
            log_level=getattr(logging, level_name, logging.INFO),
        )
