import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


class AuditLogger:
    """
    Append-only audit trail for contract lifecycle decisions.

    One JSONL file per event type, one record per line.

    Example:
        >>> audit = AuditLogger(Path("logs/audit"))
        >>> audit.log("analysis_completed", {"contract_id": "ab12", "overall_risk_score": 56})
    """

    def __init__(self, log_dir: Path):
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log(self, event_type: str, payload: Dict[str, Any]):
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "payload": payload,
        }

        with open(self._path_for(event_type), "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def read(self, event_type: str) -> List[Dict[str, Any]]:
        """
        Return every record written for `event_type`, oldest first.
        """
        path = self._path_for(event_type)
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def _path_for(self, event_type: str) -> Path:
        return self.log_dir / f"{event_type}.log.jsonl"
