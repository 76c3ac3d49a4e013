from datetime import datetime, timezone
from uuid import uuid4

from domain.models import StrictBaseModel, TurnRole


class ConversationTurn(StrictBaseModel):
    id: str
    role: TurnRole
    text: str
    created_at: datetime

    @classmethod
    def user(cls, text: str) -> "ConversationTurn":
        return cls._make(TurnRole.USER, text)

    @classmethod
    def assistant(cls, text: str) -> "ConversationTurn":
        return cls._make(TurnRole.ASSISTANT, text)

    @classmethod
    def _make(cls, role: TurnRole, text: str) -> "ConversationTurn":
        return cls(
            id=uuid4().hex,
            role=role,
            text=text,
            created_at=datetime.now(timezone.utc),
        )
