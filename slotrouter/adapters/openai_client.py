"""
OpenAI chat-completions client for AI-assisted routing decisions.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, TYPE_CHECKING

import requests

from ..domain.exceptions import AIRoutingError

if TYPE_CHECKING:
    from ..config import AIRoutingConfig

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\s*```$")


def parse_decision_content(content: str) -> Dict[str, Any]:
    """
    Decode the model answer into ``{"assignee_id": ..., "reason": ...}``.

    Markdown code fences around the JSON are stripped first.

    Raises:
        AIRoutingError: If the content is not a JSON object with an ``assignee_id``
    """
    text = _FENCE_END_RE.sub("", _FENCE_START_RE.sub("", (content or "").strip()))

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise AIRoutingError(f"Invalid JSON response from AI: {content!r}") from exc

    if not isinstance(data, dict) or "assignee_id" not in data:
        raise AIRoutingError(f"AI response is missing 'assignee_id': {content!r}")

    return data


class OpenAIRoutingClient:
    """
    Client for the chat-completions endpoint.

    Sends one user-role message and expects a JSON object back. Calls are
    never retried; every failure is raised as ``AIRoutingError``.
    """

    DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        max_tokens: int = 200,
        timeout: float = 10.0,
        endpoint: str = DEFAULT_ENDPOINT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            temperature: Sampling temperature, kept low for stable choices
            max_tokens: Upper bound for the answer length
            timeout: Hard request timeout in seconds
            endpoint: Chat-completions URL
            session: Optional requests session (mainly for tests)
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.endpoint = endpoint
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: "AIRoutingConfig") -> Optional["OpenAIRoutingClient"]:
        """Build a client from configuration, or None when no API key is configured."""
        api_key = config.resolve_api_key()
        if not api_key:
            return None

        return cls(
            api_key=api_key,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_seconds,
            endpoint=config.endpoint,
        )

    def choose(self, prompt: str) -> Dict[str, Any]:
        """
        Ask the model to pick a host for ``prompt``.

        Returns:
            Decoded answer with at least an ``assignee_id`` key

        Raises:
            AIRoutingError: On network errors, timeouts, non-200 answers or bad JSON
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        try:
            response = self._session.post(
                self.endpoint,
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise AIRoutingError(f"AI routing request failed: {e}") from e

        if response.status_code != 200:
            raise AIRoutingError(f"AI routing request failed with HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise AIRoutingError(f"AI routing response is not JSON: {e}") from e

        return parse_decision_content(self._extract_content(data))

    @staticmethod
    def _extract_content(data: Any) -> str:
        """
        Pull the message text out of a chat-completions response.

        Response format:
        {
            "choices": [
                {"message": {"role": "assistant", "content": "..."}}
            ]
        }
        """
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIRoutingError(f"Unexpected AI routing response shape: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise AIRoutingError("AI routing response has no content")

        return content
