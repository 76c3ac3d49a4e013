import argparse
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

# -----------------------------
# Agents
# -----------------------------
from agents.clause_analyzer import ContractAnalyzer, SampleClauseAnalyzer
from agents.conversation_session import ConversationRegistry
from agents.risk_aggregation_agent import RiskAggregationAgent

# -----------------------------
# Lifecycle + audit
# -----------------------------
from audit.audit_logger import AuditLogger
from lifecycle.analysis_lifecycle_manager import AnalysisLifecycleManager

# -----------------------------
# Domain
# -----------------------------
from domain.models import ContractStatus
from domain.presentation.risk_summary_builder import build_risk_summary

# -----------------------------
# Configs
# -----------------------------
from configs.catalog.clause_catalog_loader import load_clause_catalog
from configs.knowledge_base.knowledge_base_loader import load_knowledge_base
from configs.policy.analysis_policy_loader import AnalysisPolicy
from configs.settings import AppSettings

# -----------------------------
# Logger
# -----------------------------
from tools.logger import setup_logger

logger = setup_logger("legallens")


# =========================================================
# System Orchestrator
# =========================================================

class LegalLensSystem:
    """
    Wires the analysis lifecycle and the Q&A sessions from one settings
    object. Callers (CLI, MCP server) talk to `lifecycle` and
    `conversations` only through this object.
    """

    def __init__(
        self,
        settings: AppSettings,
        analyzer: Optional[ContractAnalyzer] = None,
    ):
        self.settings = settings

        self.policy = AnalysisPolicy(
            central_path=settings.policy_path,
            override_path=settings.policy_override_path,
        )
        self.knowledge_base = load_knowledge_base(settings.knowledge_base_path)
        self.aggregator = RiskAggregationAgent(self.policy)

        if analyzer is None:
            analyzer = SampleClauseAnalyzer(
                load_clause_catalog(settings.clause_catalog_path),
                delay_seconds=settings.sample_analysis_delay_seconds,
            )

        audit = AuditLogger(settings.audit_log_dir) if settings.audit_log_dir else None

        self.lifecycle = AnalysisLifecycleManager(
            analyzer,
            self.policy,
            aggregator=self.aggregator,
            timeout_seconds=settings.analysis_timeout_seconds,
            audit=audit,
        )
        self.conversations = ConversationRegistry(
            self.knowledge_base,
            typing_delay_seconds=settings.typing_delay_seconds,
            busy_policy=settings.busy_policy,
        )

    # -----------------------------------------------------

    def contract_report(self, contract_id: str) -> Dict[str, Any]:
        """
        JSON-ready view of a contract: its record plus, once completed, the
        derived categories, band label and summary.
        """
        contract = self.lifecycle.get(contract_id)
        report = contract.model_dump(mode="json")

        if contract.status == ContractStatus.COMPLETED:
            summary = build_risk_summary(contract, self.aggregator)
            report["risk_label"] = summary.risk_label
            report["risk_categories"] = [c.model_dump(mode="json") for c in summary.categories]
            report["risk_summary"] = summary.model_dump(mode="json")
        return report

    def suggested_questions(self) -> Dict[str, List[str]]:
        return {
            group: list(questions)
            for group, questions in self.knowledge_base.suggested_questions.items()
        }


# =========================================================
# CLI / Execution Entry
# =========================================================

async def run_analysis(
    document_path: Path,
    questions: List[str],
    settings: AppSettings,
) -> Dict[str, Any]:
    system = LegalLensSystem(settings)

    logger.info(f"Received contract: {document_path}")
    contract = await system.lifecycle.submit(document_path)

    # 1️⃣ Wait for the analyzer
    contract = await system.lifecycle.wait_for_result(contract.id)
    report = system.contract_report(contract.id)

    if contract.status == ContractStatus.COMPLETED:
        logger.info(
            "Contract Analysis Completed | Score=%s | Label=%s | Findings=%d",
            contract.overall_risk_score,
            report["risk_label"],
            len(contract.findings),
        )
    else:
        logger.error(
            "Contract Analysis Failed | %s | %s",
            contract.failure.kind.value,
            contract.failure.detail,
        )

    # 2️⃣ Optional Q&A
    if questions:
        session = system.conversations.open_session()
        for question in questions:
            await session.submit_question(question)
        report["conversation"] = [t.model_dump(mode="json") for t in session.turns]

    return report


def main(argv: Optional[List[str]] = None):
    """
    Analyze a local document and optionally ask questions.

    Example:
        >>> # python src/main.py "Property Agreement.pdf" --ask "What about RERA?"
    """
    parser = argparse.ArgumentParser(description="LegalLens contract risk analysis")
    parser.add_argument("document", type=Path)
    parser.add_argument("--ask", dest="questions", action="append", default=[])
    args = parser.parse_args(argv)

    settings = AppSettings.from_env()
    report = asyncio.run(run_analysis(args.document, args.questions, settings))

    logger.info("===================================")
    logger.info("*********RISK SUMMARY:*********")
    logger.info(report.get("risk_summary") or report.get("failure"))
    logger.info("===================================")

    if report.get("status") != "completed":
        raise SystemExit(1)


# =========================================================
# Entrypoint
# =========================================================

if __name__ == "__main__":
    main()
