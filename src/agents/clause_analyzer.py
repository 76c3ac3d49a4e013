from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from configs.catalog.clause_catalog_loader import load_clause_catalog
from domain.models import ClauseFinding
from tools.logger import setup_logger

logger = setup_logger("clause-analyzer")


@dataclass(frozen=True)
class DocumentRef:
    """
    What an analyzer receives: the submitted bytes plus identity.
    """

    contract_id: str
    filename: str
    content: bytes
    checksum: str


class ContractAnalyzer(Protocol):
    """
    Analyzer plugin contract.

    Must resolve exactly once: either a list of findings (possibly empty) or
    an exception. The lifecycle manager applies the timeout and may cancel
    the call; implementations should not swallow CancelledError.
    """

    async def analyze(self, document: DocumentRef) -> List[ClauseFinding]:
        ...


class SampleClauseAnalyzer:
    """
    Stand-in analyzer that replays the static clause catalog after a
    simulated processing delay. No document parsing takes place.

    Example:
        >>> analyzer = SampleClauseAnalyzer(delay_seconds=0)
        >>> findings = asyncio.run(analyzer.analyze(document))
    """

    def __init__(
        self,
        catalog: Optional[Sequence[ClauseFinding]] = None,
        *,
        delay_seconds: float = 4.0,
    ):
        self.catalog = list(catalog) if catalog is not None else load_clause_catalog()
        self.delay_seconds = delay_seconds

    async def analyze(self, document: DocumentRef) -> List[ClauseFinding]:
        logger.debug(
            "Sample analysis of %s (%d bytes)", document.filename, len(document.content)
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        # fresh instances per contract
        return [finding.model_copy() for finding in self.catalog]
