"""Three-agent thesis review wired to the bibliography."""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from asesor.models import Reference
from .agents import AgentClient, AgentConfigurationError
from .reconciler import ReferenceReconciler
from .scanner import scan_agent_output
from .storage import ReferenceStore

logger = structlog.get_logger(__name__)

MIN_ANALYSIS_CHARS = 50

STRUCTURE_PROMPT = (
    "You are an expert in thesis structure. Check whether the text has an "
    "introduction, objectives and a justification. Give two concrete suggestions.\n"
    'Text: "{text}"'
)
WRITING_PROMPT = (
    "Review grammar, style and clarity. Give two specific corrections.\n"
    'Text: "{text}"'
)
CITATIONS_PROMPT = (
    "You are an APA expert. Analyse the text and:\n"
    "1. Extract every citation in (Author, Year) form\n"
    "2. Compare them with these stored references: {stored}\n"
    "3. List the ones missing from the bibliography\n"
    "4. Suggest references as a table | # | Author (Year) | Title | Source | DOI |\n"
    'Text: "{text}"'
)
CHAT_PROMPT = (
    "You are a virtual thesis advisor with expertise in methodology, academic "
    "writing and bibliography. Answer clearly and in a structured way.\n"
    "Student question: {query}"
)


class AnalysisError(RuntimeError):
    """Raised when a document cannot be analysed."""


@dataclass(slots=True)
class AnalysisReport:
    structure: str
    writing: str
    citations: str
    suggested: list[Reference] = field(default_factory=list)
    inserted: int = 0


def format_in_text_citation(reference: Reference) -> str:
    return f"({reference.surname}, {reference.year})"


class ThesisAnalyzer:
    """Runs the structure, writing and citation agents one after another."""

    def __init__(
        self,
        agents: AgentClient,
        store: ReferenceStore,
        reconciler: ReferenceReconciler,
        flows: dict[str, str],
    ) -> None:
        self._agents = agents
        self._store = store
        self._reconciler = reconciler
        self._flows = flows

    async def analyze(self, owner_id: str, text: str) -> AnalysisReport:
        text = (text or "").strip()
        if len(text) < MIN_ANALYSIS_CHARS:
            raise AnalysisError(
                f"Write at least {MIN_ANALYSIS_CHARS} characters before requesting an analysis."
            )

        stored = await self._store.select(owner_id)
        stored_citations = ", ".join(format_in_text_citation(ref) for ref in stored) or "None"

        logger.info("analysis.start", owner=owner_id, chars=len(text))
        structure = await self._agents.invoke(
            self._flow("structure"), STRUCTURE_PROMPT.format(text=text)
        )
        writing = await self._agents.invoke(
            self._flow("writing"), WRITING_PROMPT.format(text=text)
        )
        citations = await self._agents.invoke(
            self._flow("citations"),
            CITATIONS_PROMPT.format(text=text, stored=stored_citations),
        )

        suggested = scan_agent_output(citations)
        inserted = await self._reconciler.reconcile(owner_id, suggested, existing=stored)
        logger.info("analysis.done", owner=owner_id, suggested=len(suggested), inserted=inserted)
        return AnalysisReport(
            structure=structure,
            writing=writing,
            citations=citations,
            suggested=suggested,
            inserted=inserted,
        )

    async def chat(self, query: str, context: str = "") -> str:
        return await self._agents.invoke(
            self._flow("chat"), CHAT_PROMPT.format(query=query), context
        )

    def _flow(self, role: str) -> str:
        flow_id = self._flows.get(role)
        if not flow_id:
            raise AgentConfigurationError(
                f"No flow configured for the {role} agent. Set ASESOR_AGENT_{role.upper()}."
            )
        return flow_id
