import pytest

from asesor.models import Reference
from asesor.services.agents import AgentConfigurationError
from asesor.services.analysis import AnalysisError, ThesisAnalyzer, format_in_text_citation
from asesor.services.reconciler import ReferenceReconciler
from asesor.services.storage import LocalReferenceStore
from asesor.settings import Settings

FLOWS = {"structure": "f-s", "writing": "f-w", "citations": "f-c", "chat": "f-chat"}
THESIS = (
    "La investigación cualitativa permite comprender fenómenos sociales "
    "(García, 2021) desde la perspectiva de los participantes."
)
CITATIONS_REPLY = """Citas encontradas: (García, 2021).

| # | Autor (Año) | Título | Fuente | DOI |
|---|---|---|---|---|
| 1 | García, R. (2021) | Métodos cualitativos | Revista ABC | - |
| 2 | Creswell, J. W. (2014) | Research design | SAGE | - |
"""


class _ScriptedAgents:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def invoke(self, agent_id: str, prompt: str, context: str = "") -> str:
        self.calls.append((agent_id, prompt, context))
        if agent_id == "f-c":
            return CITATIONS_REPLY
        return f"reply from {agent_id}"


def _analyzer(tmp_path, flows=FLOWS):
    store = LocalReferenceStore(Settings(data_dir=tmp_path))
    agents = _ScriptedAgents()
    analyzer = ThesisAnalyzer(agents, store, ReferenceReconciler(store), flows)
    return analyzer, agents, store


@pytest.mark.asyncio
async def test_analyze_runs_agents_in_order_and_stores_suggestions(tmp_path) -> None:
    analyzer, agents, store = _analyzer(tmp_path)
    await store.insert("owner", Reference(author="García", year="2021", title="Métodos cualitativos"))

    report = await analyzer.analyze("owner", THESIS)

    assert [call[0] for call in agents.calls] == ["f-s", "f-w", "f-c"]
    assert "(García, 2021)" in agents.calls[2][1]
    assert report.structure == "reply from f-s"
    assert report.writing == "reply from f-w"
    assert [reference.key for reference in report.suggested] == ["García-2021", "Creswell-2014"]
    assert report.inserted == 1

    stored = {reference.key: reference for reference in await store.select("owner")}
    assert stored["Creswell-2014"].from_agent is True
    assert stored["Creswell-2014"].source == "SAGE"
    assert stored["Creswell-2014"].doi_link is None


@pytest.mark.asyncio
async def test_short_text_is_rejected_before_any_agent_call(tmp_path) -> None:
    analyzer, agents, _ = _analyzer(tmp_path)

    with pytest.raises(AnalysisError):
        await analyzer.analyze("owner", "Muy corto.")

    assert agents.calls == []


@pytest.mark.asyncio
async def test_missing_flow_is_configuration_error(tmp_path) -> None:
    analyzer, agents, _ = _analyzer(tmp_path, flows={})

    with pytest.raises(AgentConfigurationError, match="ASESOR_AGENT_STRUCTURE"):
        await analyzer.analyze("owner", THESIS)

    assert agents.calls == []


@pytest.mark.asyncio
async def test_chat_uses_chat_flow_and_passes_context(tmp_path) -> None:
    analyzer, agents, _ = _analyzer(tmp_path)

    reply = await analyzer.chat("¿Cómo redacto objetivos?", context="Capítulo 1")

    assert reply == "reply from f-chat"
    agent_id, prompt, context = agents.calls[0]
    assert agent_id == "f-chat"
    assert "¿Cómo redacto objetivos?" in prompt
    assert context == "Capítulo 1"


def test_format_in_text_citation_uses_first_surname() -> None:
    reference = Reference(author="Rojas y Castillo", year="2018", title="Estudio")
    assert format_in_text_citation(reference) == "(Rojas, 2018)"
