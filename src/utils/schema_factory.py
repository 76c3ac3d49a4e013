from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel

from tools.logger import setup_logger

logger = setup_logger("schema-factory")

T = TypeVar("T", bound=BaseModel)


def build_model(
    model_cls: Type[T],
    data: Dict[str, Any],
    *,
    strict: bool = True,
    log_fn: Optional[Callable[[str], None]] = None,
) -> T:
    """
    Schema-aware constructor for config-sourced Pydantic models.

    - strict=True  -> raise on unknown keys (typo in a YAML file)
    - strict=False -> drop unknown keys, log them

    Example:
        >>> build_model(KnowledgeEntry, {"name": "rera", "keywords": ["rera"], "answer": "..."})
        KnowledgeEntry(name='rera', ...)
    """
    if not isinstance(data, dict):
        raise ValueError(
            f"{model_cls.__name__} expects a mapping, got {type(data).__name__}"
        )

    allowed = set(model_cls.model_fields.keys())
    extras = set(data.keys()) - allowed

    if extras:
        (log_fn or logger.warning)(
            f"[SCHEMA-DRIFT] {model_cls.__name__} received extra fields: "
            f"{sorted(extras)}"
        )

        if strict:
            raise ValueError(
                f"Schema drift in {model_cls.__name__}: {sorted(extras)}"
            )

        data = {k: v for k, v in data.items() if k in allowed}

    return model_cls.model_validate(data)
