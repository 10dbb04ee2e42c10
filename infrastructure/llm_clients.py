# infrastructure/llm_clients.py
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from config import settings
from core.exceptions import ConfigurationError, TextGenerationError
from core.interfaces import ITextGenerationBackend

logger = logging.getLogger(settings.LOGGER_NAME)

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class GroqChatClient(ITextGenerationBackend):
    """Client for an OpenAI-compatible chat completions API (Groq by default)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = settings.GROQ_BASE_URL,
        timeout: int = settings.REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initializes the client.

        Args:
            api_key: Bearer token for the API. Falls back to GROQ_API_KEY.
            base_url: API root, e.g. https://api.groq.com/openai/v1
            timeout: The request timeout in seconds.
            session: Optional requests.Session (connection reuse, tests).
        """
        self.api_key = api_key or settings.GROQ_API_KEY
        if not self.api_key:
            raise ConfigurationError("GROQ_API_KEY is not set in environment variables")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    @property
    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, payload: Dict[str, Any], stream: bool) -> requests.Response:
        try:
            response = self.http.post(
                self._endpoint,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
                stream=stream,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout:
            logger.error(f"LLM request timed out after {self.timeout} seconds.")
            raise TextGenerationError("LLM request timed out")
        except requests.exceptions.ConnectionError:
            logger.error(f"Cannot connect to LLM at {self.base_url}. Is the service reachable?")
            raise TextGenerationError("Cannot connect to LLM service")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else ""
            logger.error(f"LLM service returned an error: {status} {body[:300]}")
            raise TextGenerationError(f"LLM error: {status}", status_code=status)

    def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Sends a non-streaming chat completion and returns the message content."""
        logger.info(f"Sending chat completion to model '{model}'...")
        response = self._post(
            {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "stream": False,
            },
            stream=False,
        )
        try:
            result = response.json()
            content = result["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error("LLM response was malformed.")
            raise TextGenerationError("Malformed response from LLM")

        if not content:
            logger.error("LLM response was empty.")
            raise TextGenerationError("No response from LLM")
        logger.info("Successfully received response from LLM.")
        return content

    def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Iterator[str]:
        """Streams a chat completion, yielding content deltas as server-sent events arrive."""
        logger.info(f"Opening chat stream to model '{model}'...")
        response = self._post(
            {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "stream": True,
            },
            stream=True,
        )
        with response:
            for line in response.iter_lines(decode_unicode=True):
                done, delta = parse_sse_line(line)
                if done:
                    break
                if delta:
                    yield delta

    def test_connection(self, model: Optional[str] = None) -> bool:
        try:
            self.complete(
                [{"role": "user", "content": 'Test connection - respond with "OK"'}],
                model=model or settings.DEFAULT_TEXT_MODEL,
                temperature=0,
                max_tokens=5,
            )
            return True
        except TextGenerationError as e:
            logger.error(f"LLM connection test failed: {e}")
            return False


def parse_sse_line(line: Optional[str]) -> Tuple[bool, str]:
    """
    Decode one server-sent-event line of a streamed completion.

    Returns (done, delta): done is True at the end-of-stream sentinel; delta is
    '' for keep-alives, comments and events without content.
    """
    if not line or not line.startswith(SSE_DATA_PREFIX):
        return False, ""
    payload = line[len(SSE_DATA_PREFIX):].strip()
    if payload == SSE_DONE:
        return True, ""
    try:
        event = json.loads(payload)
    except ValueError:
        logger.warning(f"Skipping undecodable stream event: {payload[:100]}")
        return False, ""
    choices = event.get("choices") or []
    if not choices:
        return False, ""
    return False, (choices[0].get("delta") or {}).get("content") or ""
