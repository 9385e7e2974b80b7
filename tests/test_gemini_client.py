# tests/test_gemini_client.py

"""Tests for the Gemini JSON client using mocked HTTP responses."""

import json
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from src.ai.gemini_client import (
    GeminiClient,
    _redact_key,
    extract_json_best_effort,
)
from src.config.settings import Settings
from src.exceptions import QualificationFailure


def _reply(text: str, status: int = 200, headers: dict[str, str] | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    payload: Any = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    resp.json.return_value = payload
    resp.text = json.dumps(payload)
    return resp


class TestExtractJson(unittest.TestCase):
    """extract_json_best_effort parsing."""

    def test_plain_array(self) -> None:
        self.assertEqual(extract_json_best_effort('["a", "b"]'), ["a", "b"])

    def test_fenced_block(self) -> None:
        text = 'Here you go:\n```json\n{"riskScore": 10}\n```\nthanks'
        self.assertEqual(extract_json_best_effort(text), {"riskScore": 10})

    def test_array_inside_prose(self) -> None:
        text = 'Ranked: ["x1", "x2"] as requested.'
        self.assertEqual(extract_json_best_effort(text), ["x1", "x2"])

    def test_no_json_raises(self) -> None:
        with self.assertRaises(ValueError):
            extract_json_best_effort("no idea")
        with self.assertRaises(ValueError):
            extract_json_best_effort("   ")


class TestRedactKey(unittest.TestCase):
    def test_key_masked(self) -> None:
        self.assertEqual(
            _redact_key("https://x/y?key=abc123&alt=json"),
            "https://x/y?key=REDACTED&alt=json",
        )


@patch("src.ai.gemini_client.curl_requests.Session")
class TestGeminiClient(unittest.TestCase):
    """GeminiClient.generate_json behaviour."""

    def _client(self, mock_session_cls: MagicMock) -> tuple[GeminiClient, MagicMock]:
        session = MagicMock()
        mock_session_cls.return_value = session
        return GeminiClient(api_key="secret-key", model="gemini-test"), session

    def test_returns_parsed_json(self, mock_session_cls: MagicMock) -> None:
        client, session = self._client(mock_session_cls)
        session.post.return_value = _reply('["id2", "id1"]')

        self.assertEqual(client.generate_json("rank"), ["id2", "id1"])

        call = session.post.call_args
        self.assertTrue(call.args[0].endswith("/models/gemini-test:generateContent"))
        self.assertEqual(call.kwargs["params"], {"key": "secret-key"})
        config = call.kwargs["json"]["generationConfig"]
        self.assertEqual(config["response_mime_type"], "application/json")

    def test_missing_key_fails_without_request(
        self, mock_session_cls: MagicMock
    ) -> None:
        session = MagicMock()
        mock_session_cls.return_value = session
        client = GeminiClient(api_key="")
        with self.assertRaises(QualificationFailure):
            client.generate_json("rank")
        session.post.assert_not_called()

    @patch("src.ai.gemini_client.time.sleep")
    def test_429_retried_honouring_retry_after(
        self, mock_sleep: MagicMock, mock_session_cls: MagicMock
    ) -> None:
        client, session = self._client(mock_session_cls)
        session.post.side_effect = [
            _reply("", status=429, headers={"retry-after": "3"}),
            _reply('["a"]'),
        ]

        self.assertEqual(client.generate_json("rank"), ["a"])
        mock_sleep.assert_called_once_with(3.0)

    @patch("src.ai.gemini_client.time.sleep")
    def test_503_exhausts_retries(
        self, mock_sleep: MagicMock, mock_session_cls: MagicMock
    ) -> None:
        client, session = self._client(mock_session_cls)
        session.post.return_value = _reply("", status=503)

        with self.assertRaises(QualificationFailure):
            client.generate_json("rank")
        self.assertEqual(session.post.call_count, Settings.AI_MAX_RETRIES + 1)
        self.assertEqual(mock_sleep.call_count, Settings.AI_MAX_RETRIES)

    def test_http_error_message_is_redacted(
        self, mock_session_cls: MagicMock
    ) -> None:
        client, session = self._client(mock_session_cls)
        resp = _reply("", status=400)
        resp.text = "bad request for https://x?key=secret-key"
        session.post.return_value = resp

        with self.assertRaises(QualificationFailure) as ctx:
            client.generate_json("rank")
        self.assertNotIn("secret-key", str(ctx.exception))

    def test_transport_error_wrapped(self, mock_session_cls: MagicMock) -> None:
        client, session = self._client(mock_session_cls)
        session.post.side_effect = ConnectionError("timed out ?key=secret-key")

        with self.assertRaises(QualificationFailure) as ctx:
            client.generate_json("rank")
        self.assertNotIn("secret-key", str(ctx.exception))

    def test_unparseable_output(self, mock_session_cls: MagicMock) -> None:
        client, session = self._client(mock_session_cls)
        session.post.return_value = _reply("I cannot help with that")

        with self.assertRaises(QualificationFailure):
            client.generate_json("rank")

    def test_missing_candidates(self, mock_session_cls: MagicMock) -> None:
        client, session = self._client(mock_session_cls)
        resp = _reply("")
        resp.json.return_value = {"promptFeedback": {"blockReason": "SAFETY"}}
        session.post.return_value = resp

        with self.assertRaises(QualificationFailure):
            client.generate_json("rank")


if __name__ == "__main__":
    unittest.main()
