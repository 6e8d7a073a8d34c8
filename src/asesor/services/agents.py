"""Clients for the hosted LLM agents (Langflow flows)."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from asesor.settings import Settings

logger = structlog.get_logger(__name__)


class AgentError(RuntimeError):
    """Raised when an agent call does not produce a reply."""


class AgentRateLimitError(AgentError):
    """The agent service answered 429."""


class AgentServerError(AgentError):
    """The agent service answered with a 5xx status."""


class AgentConfigurationError(AgentError):
    """No flow is configured for the requested agent role."""


class AgentClient(Protocol):
    """Protocol for LLM agent backends."""

    async def invoke(self, agent_id: str, prompt: str, context: str = "") -> str:
        ...


class LangflowAgentClient:
    """Runs Langflow flows over HTTP and returns the chat message text."""

    name = "langflow"

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    async def invoke(self, agent_id: str, prompt: str, context: str = "") -> str:
        logger.info("agent.invoke", agent=agent_id, prompt_chars=len(prompt))
        url = f"{self._settings.langflow_url.rstrip('/')}/run/{agent_id}"
        payload = {
            "input_value": f"{prompt}\n\n{context}".strip() if context else prompt,
            "input_type": "chat",
            "output_type": "chat",
        }
        headers = {"Content-Type": "application/json"}
        if self._settings.langflow_token:
            headers["Authorization"] = f"Bearer {self._settings.langflow_token}"
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("agent.transport_error", agent=agent_id, error=str(exc))
            raise AgentError(f"Could not reach the AI service: {exc}") from exc

        if response.status_code == 429:
            logger.warning("agent.rate_limited", agent=agent_id)
            raise AgentRateLimitError(
                "The AI service is rate limiting requests. Wait a moment and try again."
            )
        if response.status_code >= 500:
            logger.warning("agent.server_error", agent=agent_id, status=response.status_code)
            raise AgentServerError(
                f"Internal error in the AI server (HTTP {response.status_code})."
            )
        if not response.is_success:
            logger.warning("agent.error", agent=agent_id, status=response.status_code)
            raise AgentError(
                f"AI service rejected the request (HTTP {response.status_code}): "
                f"{response.text[:200]}"
            )

        text = extract_message_text(response.json())
        if not text:
            raise AgentError("The AI service returned an empty reply.")
        return text.strip()


def extract_message_text(payload: dict[str, Any]) -> str | None:
    """Pull the chat message out of a Langflow run response."""
    outputs = payload.get("outputs") or []
    if not outputs:
        return None
    first = outputs[0] or {}
    nested = first.get("outputs")
    if nested:
        first = nested[0] or {}
    message = (first.get("results") or {}).get("message") or {}
    if isinstance(message, dict):
        return message.get("text") or (message.get("data") or {}).get("text")
    return None
