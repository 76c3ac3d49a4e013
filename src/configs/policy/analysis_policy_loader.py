# src/configs/policy/analysis_policy_loader.py

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from domain.models import RiskLevel


DEFAULT_POLICY_PATH = Path(__file__).resolve().parent / "analysis_policy.yaml"

EXPECTED_RISKS = {level.value for level in RiskLevel}


@dataclass(frozen=True)
class KeywordRule:
    name: str
    keywords: Tuple[str, ...]

    def matches(self, text: str) -> bool:
        lowered = text.casefold()
        return any(kw in lowered for kw in self.keywords)


class AnalysisPolicy:
    """
    Loads and validates the analysis policy.

    Supports:
    - Central policy (mandatory)
    - Optional override file (e.g. a jurisdiction specific weighting)
    - Strict validation with fail-fast guarantees

    This is a POLICY object: the numbers here are adjustable without touching
    the aggregator or lifecycle code.
    """

    def __init__(
        self,
        central_path: Path = DEFAULT_POLICY_PATH,
        override_path: Optional[Path] = None,
    ):
        # -------------------------------------------------
        # Load central policy
        # -------------------------------------------------
        self.central_raw = self._load_yaml(central_path, "central_policy")

        # -------------------------------------------------
        # Load optional override
        # -------------------------------------------------
        self.override_raw = None
        if override_path:
            self.override_raw = self._load_yaml(override_path, "policy_override")

        # -------------------------------------------------
        # Merge (central + override)
        # -------------------------------------------------
        self.raw = self._merge_policy(
            self.central_raw,
            self.override_raw.get("overrides") if self.override_raw else None,
        )

        # -------------------------------------------------
        # Mandatory metadata
        # -------------------------------------------------
        if "version" not in self.raw:
            raise ValueError("policy.version is required")
        self.version = str(self.raw["version"])
        self.source = self.raw.get("source", "unknown")

        # -------------------------------------------------
        # Core sections
        # -------------------------------------------------
        self.allowed_extensions = self._parse_extensions()
        self.default_contract_type, self.contract_type_rules = self._parse_contract_types()
        self.weights = self._parse_weights()
        self.categories, self.fallback_category = self._parse_categories()
        self.high_band, self.medium_band = self._parse_bands()

    # =========================================================
    # YAML loading
    # =========================================================

    def _load_yaml(self, path: Path, label: str) -> dict:
        if path is None:
            raise ValueError(f"{label} path must be provided")

        if not path.exists():
            raise FileNotFoundError(f"{label} file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if not isinstance(raw, dict):
            raise ValueError(f"{label} file is empty or invalid YAML: {path}")

        return raw

    # =========================================================
    # Deep merge logic
    # =========================================================

    def _merge_policy(self, base: dict, overrides: Optional[dict]) -> dict:
        """
        Deep merge with override priority. Lists are replaced, not appended.
        """
        merged = copy.deepcopy(base)

        if not overrides:
            return merged

        def deep_merge(dst: dict, src: dict):
            for key, value in src.items():
                if (
                    key in dst
                    and isinstance(dst[key], dict)
                    and isinstance(value, dict)
                ):
                    deep_merge(dst[key], value)
                else:
                    dst[key] = value

        deep_merge(merged, overrides)
        return merged

    # =========================================================
    # Parsing + validation
    # =========================================================

    def _parse_extensions(self) -> Tuple[str, ...]:
        exts = (self.raw.get("submission") or {}).get("allowed_extensions")
        if not exts or not isinstance(exts, list):
            raise ValueError("submission.allowed_extensions must be a non-empty list")

        out = []
        for ext in exts:
            ext = str(ext).strip().lower()
            if not ext.startswith("."):
                raise ValueError(f"Invalid extension '{ext}': must start with '.'")
            out.append(ext)
        return tuple(out)

    def _parse_contract_types(self) -> Tuple[str, List[KeywordRule]]:
        section = self.raw.get("contract_types") or {}
        default = section.get("default")
        if not default:
            raise ValueError("contract_types.default is required")

        rules = [
            self._keyword_rule(r, "contract_types.rules")
            for r in section.get("rules", []) or []
        ]
        return str(default), rules

    def _parse_weights(self) -> Dict[RiskLevel, int]:
        weights = (self.raw.get("scoring") or {}).get("weights")
        if not weights:
            raise ValueError("scoring.weights is required")

        if set(weights.keys()) != EXPECTED_RISKS:
            raise ValueError(f"scoring.weights must define exactly {EXPECTED_RISKS}")

        out: Dict[RiskLevel, int] = {}
        for level, value in weights.items():
            if isinstance(value, bool) or not isinstance(value, int) or not (0 <= value <= 100):
                raise ValueError(
                    f"scoring.weights.{level} must be an integer between 0 and 100"
                )
            out[RiskLevel(level)] = value
        return out

    def _parse_categories(self) -> Tuple[List[KeywordRule], str]:
        section = self.raw.get("risk_categories") or {}
        raw_categories = section.get("categories")
        if not raw_categories:
            raise ValueError("risk_categories.categories must be a non-empty list")

        categories = [
            self._keyword_rule(c, "risk_categories.categories")
            for c in raw_categories
        ]

        names = [c.name for c in categories]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate risk category names: {names}")

        fallback = section.get("fallback")
        if fallback not in names:
            raise ValueError(
                f"risk_categories.fallback '{fallback}' must be one of {names}"
            )
        return categories, fallback

    def _parse_bands(self) -> Tuple[int, int]:
        bands = self.raw.get("risk_bands") or {}
        high = bands.get("high")
        medium = bands.get("medium")
        for label, value in (("high", high), ("medium", medium)):
            if isinstance(value, bool) or not isinstance(value, int) or not (0 <= value <= 100):
                raise ValueError(f"risk_bands.{label} must be an integer between 0 and 100")
        if medium > high:
            raise ValueError("risk_bands.medium must not exceed risk_bands.high")
        return high, medium

    def _keyword_rule(self, raw: dict, label: str) -> KeywordRule:
        if not isinstance(raw, dict) or not raw.get("name"):
            raise ValueError(f"Every entry of {label} needs a name")

        keywords = raw.get("keywords") or []
        if not isinstance(keywords, list):
            raise ValueError(f"{label}.{raw['name']}.keywords must be a list")

        return KeywordRule(
            name=str(raw["name"]),
            keywords=tuple(str(k).casefold() for k in keywords if str(k).strip()),
        )

    # =========================================================
    # Audit helpers
    # =========================================================

    @property
    def category_names(self) -> List[str]:
        return [c.name for c in self.categories]

    def audit_metadata(self) -> dict:
        """
        Attach this to lifecycle audit records for traceability.
        """
        return {
            "policy_version": self.version,
            "policy_source": self.source,
            "override": self.override_raw.get("name", "custom")
            if self.override_raw
            else "central",
        }
