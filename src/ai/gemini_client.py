# src/ai/gemini_client.py

"""Minimal Gemini ``generateContent`` client returning parsed JSON."""

import json
import logging
import random
import re
import time
from typing import Any

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.exceptions import QualificationFailure

logger = logging.getLogger("baybot.ai")

_RETRY_STATUSES = (429, 503)


def _redact_key(text: str) -> str:
    """Mask ``key=...`` so API keys never reach logs or errors."""
    if not text:
        return text
    return re.sub(r"(key=)([^&\s]+)", r"\1REDACTED", text)


def extract_json_best_effort(text: str) -> Any:
    """Parse the first JSON value in ``text``.

    Tries the whole text, then a fenced ```json block, then the
    widest array or object span. Raises ``ValueError`` if none parse.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("Empty model output")
    try:
        return json.loads(stripped)
    except ValueError:
        pass

    fenced = re.search(
        r"```(?:json)?\s*(.*?)\s*```", stripped, re.DOTALL | re.IGNORECASE
    )
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except ValueError:
            pass

    for pattern in (r"\[.*\]", r"\{.*\}"):
        match = re.search(pattern, stripped, re.DOTALL)
        if match:
            try:
                return json.loads(match.group(0))
            except ValueError:
                continue
    raise ValueError("No JSON value found in model output")


class GeminiClient:
    """Synchronous JSON-mode client for one Gemini model.

    429 and 503 responses are retried with exponential backoff and
    jitter, honouring ``Retry-After`` when the server sends it. Any
    other failure raises :class:`QualificationFailure`.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        self.settings = Settings()
        self.api_key = api_key if api_key is not None else self.settings.GEMINI_API_KEY
        self.model = model or self.settings.GEMINI_MODEL
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )

    @property
    def endpoint(self) -> str:
        return (
            f"{self.settings.GEMINI_API_BASE}/models/"
            f"{self.model}:generateContent"
        )

    def _retry_wait(self, resp: curl_requests.Response, attempt: int) -> float:
        retry_after = resp.headers.get("retry-after")
        if retry_after:
            try:
                return max(0.5, min(float(retry_after), self.settings.AI_MAX_BACKOFF))
            except ValueError:
                logger.debug("Ignoring non-numeric Retry-After %r", retry_after)
        base = min(self.settings.AI_MAX_BACKOFF, float(2 ** attempt))
        return base + random.uniform(0.0, 0.5)

    def _post(self, payload: dict[str, Any]) -> curl_requests.Response:
        max_retries = self.settings.AI_MAX_RETRIES
        for attempt in range(max_retries + 1):
            try:
                resp = self.session.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=payload,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
            except Exception as exc:
                raise QualificationFailure(
                    f"Gemini request failed: {_redact_key(str(exc))}"
                ) from exc

            if resp.status_code in _RETRY_STATUSES and attempt < max_retries:
                wait = self._retry_wait(resp, attempt)
                logger.warning(
                    "Gemini HTTP %d, retrying in %.1fs (attempt %d/%d)",
                    resp.status_code,
                    wait,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(wait)
                continue
            return resp
        raise QualificationFailure("Gemini retries exhausted")

    def generate_json(self, prompt: str) -> Any:
        """Send ``prompt`` and return the model's JSON answer."""
        if not self.api_key:
            raise QualificationFailure("GEMINI_API_KEY is not configured")

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.2,
                "response_mime_type": "application/json",
            },
        }
        resp = self._post(payload)
        if resp.status_code >= 400:
            raise QualificationFailure(
                f"Gemini generateContent failed: HTTP {resp.status_code} "
                f"{_redact_key(resp.text)[:500]}"
            )

        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(str(part.get("text", "")) for part in parts)
            result = extract_json_best_effort(text)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise QualificationFailure(
                f"Unparseable Gemini response: {exc}"
            ) from exc

        logger.debug("Gemini (%s) returned %s", self.model, type(result).__name__)
        return result
