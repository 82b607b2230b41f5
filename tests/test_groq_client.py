"""
Tests for the Groq chat-completions client: transport, credentials, errors.
"""

import io
import json
import socket
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

import pytest

import groq_client
from groq_client import UpstreamCallFailed, UpstreamUnavailable

MESSAGES = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]


class FakeResponse:
    def __init__(self, body, status=200):
        self.status = status
        self._raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")

    def read(self):
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _completion(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class TestCreateChatCompletion:

    def test_sends_fixed_model_temperature_and_bearer(self):
        with patch.object(groq_client, "urlopen", return_value=FakeResponse(_completion("{}"))) as mock_open:
            body = groq_client.create_chat_completion(MESSAGES)

        assert body == _completion("{}")
        req = mock_open.call_args[0][0]
        assert req.full_url == groq_client.GROQ_API_URL
        assert req.get_method() == "POST"
        assert req.get_header("Authorization") == "Bearer test-key"
        assert req.get_header("Content-type") == "application/json"

        payload = json.loads(req.data.decode("utf-8"))
        assert payload == {
            "model": groq_client.GROQ_MODEL_ID,
            "messages": MESSAGES,
            "temperature": 0.8,
        }
        assert mock_open.call_args[1]["timeout"] == groq_client.GROQ_TIMEOUT_SECONDS

    def test_http_error_status_raises(self):
        err = HTTPError(
            groq_client.GROQ_API_URL, 401, "Unauthorized", {},
            io.BytesIO(b'{"error": {"message": "Invalid API Key"}}'),
        )
        with patch.object(groq_client, "urlopen", side_effect=err):
            with pytest.raises(UpstreamCallFailed, match="401"):
                groq_client.create_chat_completion(MESSAGES)

    def test_non_json_outer_response_raises(self):
        with patch.object(groq_client, "urlopen", return_value=FakeResponse(b"<html>bad gateway</html>")):
            with pytest.raises(UpstreamCallFailed, match="not JSON"):
                groq_client.create_chat_completion(MESSAGES)

    def test_network_error_raises(self):
        with patch.object(groq_client, "urlopen", side_effect=URLError("connection refused")):
            with pytest.raises(UpstreamCallFailed) as exc:
                groq_client.create_chat_completion(MESSAGES)
        assert not isinstance(exc.value, UpstreamUnavailable)

    @pytest.mark.parametrize("err", [
        URLError(socket.timeout("timed out")),
        socket.timeout("timed out"),
    ])
    def test_timeout_raises_unavailable(self, err):
        with patch.object(groq_client, "urlopen", side_effect=err):
            with pytest.raises(UpstreamUnavailable):
                groq_client.create_chat_completion(MESSAGES)

    def test_missing_credentials_raise_before_call(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY")
        with patch.object(groq_client, "urlopen") as mock_open:
            with pytest.raises(UpstreamCallFailed, match="GROQ_API_KEY"):
                groq_client.create_chat_completion(MESSAGES)
        mock_open.assert_not_called()


class TestApiKeyFromSecretsManager:

    def _secrets(self, secret_string):
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": secret_string}
        groq_client._CLIENTS["secretsmanager"] = client
        return client

    def test_json_secret_is_read_once_and_cached(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY")
        monkeypatch.setenv("GROQ_SECRET_ARN", "arn:aws:secretsmanager:ap-southeast-2:123:secret:groq")
        client = self._secrets('{"api_key": "from-secret"}')

        assert groq_client.get_api_key() == "from-secret"
        assert groq_client.get_api_key() == "from-secret"
        client.get_secret_value.assert_called_once_with(
            SecretId="arn:aws:secretsmanager:ap-southeast-2:123:secret:groq"
        )

    def test_plain_string_secret(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY")
        monkeypatch.setenv("GROQ_SECRET_ID", "groq-key")
        self._secrets("gsk_plain")
        assert groq_client.get_api_key() == "gsk_plain"

    def test_secret_without_key_field(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY")
        monkeypatch.setenv("GROQ_SECRET_ID", "groq-key")
        self._secrets('{"token": "nope"}')
        with pytest.raises(UpstreamCallFailed, match="api_key"):
            groq_client.get_api_key()

    def test_env_key_wins_over_secret(self, monkeypatch):
        monkeypatch.setenv("GROQ_SECRET_ID", "groq-key")
        client = self._secrets('{"api_key": "from-secret"}')
        assert groq_client.get_api_key() == "test-key"
        client.get_secret_value.assert_not_called()


class TestFirstChoiceText:

    def test_returns_first_message_content(self):
        resp = _completion('{"a": 1}')
        resp["choices"].append({"message": {"content": "second"}})
        assert groq_client.first_choice_text(resp) == '{"a": 1}'

    @pytest.mark.parametrize("resp", [
        {},
        {"choices": []},
        {"choices": None},
        {"choices": [{}]},
        {"choices": [{"message": None}]},
        {"choices": [{"message": {"content": None}}]},
        {"error": {"message": "rate limited"}},
    ])
    def test_missing_content_is_empty(self, resp):
        assert groq_client.first_choice_text(resp) == ""
