from unittest import mock

import pytest
import requests
from flask import Flask

from writing_tutor.flask_app.services.errors import ExternalServiceError, MalformedResponseError
from writing_tutor.flask_app.services.gemini_client import GeminiClient


class _Resp:
    def __init__(self, status_code: int, payload: dict):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if 400 <= self.status_code:
            raise requests.exceptions.HTTPError(response=self)

    def json(self):
        return self._payload


def _candidate(text, finish_reason="STOP"):
    return {"candidates": [{"finishReason": finish_reason, "content": {"parts": [{"text": text}]}}]}


@pytest.fixture(autouse=True)
def app_context():
    app = Flask(__name__)
    with app.app_context():
        yield


def test_generate_json_sends_schema_and_timeout():
    client = GeminiClient(api_key="test-key", model="gemini-test")
    schema = {"type": "OBJECT"}
    calls = []

    def fake_post(url, json=None, timeout=None):  # noqa: A002 - shadowing builtin allowed in tests
        calls.append((url, json, timeout))
        return _Resp(200, _candidate('{"score": 3}'))

    with mock.patch("writing_tutor.flask_app.services.gemini_client.requests.post", side_effect=fake_post):
        result = client.generate_json("prompt", response_schema=schema, timeout=5)

    assert result == {"score": 3}
    assert len(calls) == 1
    url, payload, timeout = calls[0]
    assert "gemini-test" in url
    assert payload["generationConfig"]["responseSchema"] == schema
    assert payload["generationConfig"]["responseMimeType"] == "application/json"
    assert timeout == 5


def test_generate_json_uses_client_timeout_by_default(monkeypatch):
    monkeypatch.setenv("GEMINI_TIMEOUT_SECONDS", "7")
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(200, _candidate('{"ok": true}')),
    ) as post:
        client.generate_json("prompt")

    assert post.call_args.kwargs["timeout"] == 7.0


def test_timeout_becomes_external_service_error():
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        side_effect=requests.exceptions.Timeout("slow"),
    ) as post:
        with pytest.raises(ExternalServiceError):
            client.generate_json_or_raise("prompt")

    # Single-shot: no retry on timeout
    assert post.call_count == 1


def test_http_error_becomes_external_service_error():
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(429, {}),
    ):
        with pytest.raises(ExternalServiceError) as excinfo:
            client.generate_json_or_raise("prompt")

    assert not isinstance(excinfo.value, MalformedResponseError)


def test_unparseable_reply_is_malformed():
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(200, _candidate("no json here at all")),
    ):
        assert client.generate_json("prompt") is None
        with pytest.raises(MalformedResponseError):
            client.generate_json_or_raise("prompt")


@pytest.mark.parametrize("payload", [
    [{"x": 1}],
    "just a string",
    {"candidates": ["not a dict", None]},
    {"candidates": [{"content": ["not", "a", "dict"]}]},
    {"candidates": [{"content": {"parts": "oops"}}]},
    {"candidates": {"0": "wrong shape"}, "promptFeedback": "blocked"},
])
def test_non_object_reply_is_malformed(payload):
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(200, payload),
    ):
        assert client.generate_json("prompt") is None
        with pytest.raises(MalformedResponseError):
            client.generate_json_or_raise("prompt")


def test_bad_candidate_is_skipped_for_a_good_one():
    client = GeminiClient(api_key="test-key")
    payload = {"candidates": ["junk", _candidate('{"score": 3}')["candidates"][0]]}

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(200, payload),
    ):
        assert client.generate_json("prompt") == {"score": 3}


def test_missing_api_key_is_external_service_error(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    client = GeminiClient()

    assert not client.is_configured
    with mock.patch("writing_tutor.flask_app.services.gemini_client.requests.post") as post:
        with pytest.raises(ExternalServiceError):
            client.generate_json_or_raise("prompt")
    post.assert_not_called()


def test_empty_candidate_text_returns_none():
    client = GeminiClient(api_key="test-key")

    with mock.patch(
        "writing_tutor.flask_app.services.gemini_client.requests.post",
        return_value=_Resp(200, _candidate("", finish_reason="MAX_TOKENS")),
    ):
        assert client.generate_json("prompt") is None


def test_robust_json_substring_extraction():
    text = "Some preface. Here is JSON: ```json\n{\n  \"a\": 1\n}\n``` and some trailer."
    parsed = GeminiClient._robust_parse_json(text)
    assert isinstance(parsed, dict)
    assert parsed.get("a") == 1


def test_fenced_json_is_parsed():
    assert GeminiClient._parse_json_response("```json\n{\"score\": 2}\n```") == {"score": 2}
