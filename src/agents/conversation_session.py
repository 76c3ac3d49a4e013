from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from agents.query_matcher import match_answer
from domain.conversation import ConversationTurn
from domain.errors import EmptyQuery, SessionBusy, SessionNotFound
from domain.knowledge_base import KnowledgeBase
from tools.logger import setup_logger

logger = setup_logger("conversation-session")

Matcher = Callable[[str, KnowledgeBase], str]

QUEUE = "queue"
REJECT = "reject"


class ConversationSession:
    """
    Ordered, append-only chat history answered by the query matcher.

    Questions are serialized: the assistant turn for request N is appended
    before the user turn of request N+1. Overlapping submissions either wait
    in FIFO order (`busy_policy="queue"`, default) or fail fast with
    SessionBusy (`busy_policy="reject"`).

    The typing delay is only a suspension point. The answer is decided before
    it and the assistant turn is appended after it even if the waiting
    caller is cancelled, so turns always come in user/assistant pairs.

    Example:
        >>> session = ConversationSession(kb, typing_delay_seconds=0)
        >>> turns = await session.submit_question("What about RERA?")
        >>> [t.role.value for t in turns]
        ['user', 'assistant']
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        *,
        session_id: Optional[str] = None,
        typing_delay_seconds: float = 2.0,
        busy_policy: str = QUEUE,
        matcher: Matcher = match_answer,
    ):
        if busy_policy not in (QUEUE, REJECT):
            raise ValueError(f"Unknown busy_policy '{busy_policy}'")

        self.id = session_id or uuid4().hex
        self.knowledge_base = knowledge_base
        self.typing_delay_seconds = typing_delay_seconds
        self.busy_policy = busy_policy
        self.matcher = matcher

        self._turns: List[ConversationTurn] = []
        self._lock = asyncio.Lock()
        self._waiting = 0

    # -------------------------------------------------
    # State
    # -------------------------------------------------

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def is_busy(self) -> bool:
        """True while a request is in flight (the UI's "typing" indicator)."""
        return self._lock.locked()

    @property
    def queued_requests(self) -> int:
        return self._waiting

    # -------------------------------------------------
    # Public API
    # -------------------------------------------------

    async def submit_question(self, text: str) -> tuple[ConversationTurn, ...]:
        """
        Append the user turn and, after the typing suspension, the assistant
        turn. Returns the full turn sequence at that point.
        """
        if text is None or not text.strip():
            raise EmptyQuery("Question must not be empty")

        if self.busy_policy == REJECT and self._lock.locked():
            raise SessionBusy(f"Session {self.id} is answering another question")

        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1

        try:
            await self._answer(text)
        finally:
            self._lock.release()

        return self.turns

    async def _answer(self, text: str):
        # a matcher error must not leave an unpaired user turn
        answer = self.matcher(text, self.knowledge_base)
        self._turns.append(ConversationTurn.user(text))

        try:
            if self.typing_delay_seconds:
                await asyncio.sleep(self.typing_delay_seconds)
        finally:
            self._turns.append(ConversationTurn.assistant(answer))
            logger.info(
                "Session %s answered question #%d", self.id, len(self._turns) // 2
            )


class ConversationRegistry:
    """
    Session lookup keyed by id. Sessions share nothing but the (read-only)
    knowledge base.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        *,
        typing_delay_seconds: float = 2.0,
        busy_policy: str = QUEUE,
    ):
        self.knowledge_base = knowledge_base
        self.typing_delay_seconds = typing_delay_seconds
        self.busy_policy = busy_policy
        self._sessions: Dict[str, ConversationSession] = {}

    def open_session(self, session_id: Optional[str] = None) -> ConversationSession:
        session = ConversationSession(
            self.knowledge_base,
            session_id=session_id,
            typing_delay_seconds=self.typing_delay_seconds,
            busy_policy=self.busy_policy,
        )
        if session.id in self._sessions:
            raise ValueError(f"Session already exists: {session.id}")
        self._sessions[session.id] = session
        logger.info("Opened conversation session %s", session.id)
        return session

    def get(self, session_id: str) -> ConversationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(f"Session not found: {session_id}") from None

    def get_or_open(self, session_id: Optional[str]) -> ConversationSession:
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]
        return self.open_session(session_id)

    async def submit_question(self, session_id: str, text: str) -> tuple[ConversationTurn, ...]:
        return await self.get(session_id).submit_question(text)

    def close(self, session_id: str):
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(f"Session not found: {session_id}")
