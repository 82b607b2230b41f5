import os
import json
import socket
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.request import Request, urlopen
from urllib.error import HTTPError, URLError

import boto3

logger = logging.getLogger()

# -----------------------------
# Upstream settings
# -----------------------------
GROQ_API_URL = (os.getenv("GROQ_API_URL") or "https://api.groq.com/openai/v1/chat/completions").strip()
GROQ_MODEL_ID = (os.getenv("GROQ_MODEL_ID") or "llama-3.1-8b-instant").strip()
GROQ_TIMEOUT_SECONDS = int(os.getenv("GROQ_TIMEOUT_SECONDS", "30"))
TEMPERATURE = 0.8

SECRETS_REGION = (os.getenv("SECRETS_REGION") or "").strip()

# -----------------------------
# Credential cache (warm Lambda reuse)
# -----------------------------
_KEY_CACHE = {"api_key": None}
_CLIENTS: Dict[str, Any] = {}


class UpstreamCallFailed(RuntimeError):
    """The completion provider could not be reached or answered with something unusable."""


class UpstreamUnavailable(UpstreamCallFailed):
    """The completion provider did not answer within GROQ_TIMEOUT_SECONDS."""


# -----------------------------
# Helpers: HTTP
# -----------------------------
def _http_json(
    method: str,
    url: str,
    headers: dict,
    payload: Optional[dict] = None,
    timeout: int = GROQ_TIMEOUT_SECONDS,
) -> Tuple[int, Any]:
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers = dict(headers or {})
        headers["Content-Type"] = "application/json"

    req = Request(url=url, data=data, headers=headers, method=method.upper())
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
            if not raw:
                return resp.status, {}
            return resp.status, json.loads(raw)
    except HTTPError as e:
        raw = e.read().decode("utf-8") if e.fp else ""
        try:
            return e.code, json.loads(raw) if raw else {"error": raw}
        except ValueError:
            return e.code, {"error": raw or str(e)}
    except URLError as e:
        if isinstance(e.reason, socket.timeout):
            raise UpstreamUnavailable(f"Timed out after {timeout}s calling {url}") from e
        raise UpstreamCallFailed(f"URLError: {e}") from e
    except socket.timeout as e:
        raise UpstreamUnavailable(f"Timed out after {timeout}s calling {url}") from e
    except ValueError as e:
        raise UpstreamCallFailed(f"Upstream response is not JSON: {e}") from e


# -----------------------------
# Helpers: Secrets
# -----------------------------
def _secrets_client():
    if "secretsmanager" not in _CLIENTS:
        if SECRETS_REGION:
            _CLIENTS["secretsmanager"] = boto3.client("secretsmanager", region_name=SECRETS_REGION)
        else:
            _CLIENTS["secretsmanager"] = boto3.client("secretsmanager")
    return _CLIENTS["secretsmanager"]


def _load_secret_api_key() -> str:
    # accept either ARN or Name/ID
    secret_ref = (os.getenv("GROQ_SECRET_ARN") or os.getenv("GROQ_SECRET_ID") or "").strip()
    if not secret_ref:
        raise UpstreamCallFailed("Missing GROQ_API_KEY (or GROQ_SECRET_ARN / GROQ_SECRET_ID)")

    resp = _secrets_client().get_secret_value(SecretId=secret_ref)
    secret_str = (resp.get("SecretString") or "").strip()
    if not secret_str:
        raise UpstreamCallFailed("Groq secret is empty")

    # Plain-string secrets hold the key itself; JSON secrets hold it under a named field.
    if not secret_str.startswith("{"):
        return secret_str
    try:
        secret = json.loads(secret_str)
    except ValueError:
        raise UpstreamCallFailed("SecretString is not valid JSON")

    key = secret.get("api_key") or secret.get("apiKey") or secret.get("GROQ_API_KEY")
    if not key:
        raise UpstreamCallFailed("Secret must include api_key")
    return str(key).strip()


def get_api_key() -> str:
    env_key = (os.getenv("GROQ_API_KEY") or "").strip()
    if env_key:
        return env_key

    if not _KEY_CACHE["api_key"]:
        _KEY_CACHE["api_key"] = _load_secret_api_key()
    return _KEY_CACHE["api_key"]


# -----------------------------
# Chat completions
# -----------------------------
def create_chat_completion(messages: List[Dict[str, str]]) -> dict:
    """
    POST one chat completion request to Groq's OpenAI-compatible endpoint.

    Model and temperature are fixed per process; nothing about the call is
    chosen by the caller. Raises UpstreamCallFailed on any unusable answer.
    """
    headers = {"Authorization": f"Bearer {get_api_key()}"}
    payload = {
        "model": GROQ_MODEL_ID,
        "messages": messages,
        "temperature": TEMPERATURE,
    }

    logger.info("Calling Groq chat completions model=%s url=%s", GROQ_MODEL_ID, GROQ_API_URL)
    status, body = _http_json("POST", GROQ_API_URL, headers=headers, payload=payload, timeout=GROQ_TIMEOUT_SECONDS)

    if status < 200 or status >= 300:
        raise UpstreamCallFailed(f"Groq call failed ({status}): {str(body)[:500]}")
    if not isinstance(body, dict):
        raise UpstreamCallFailed(f"Groq response is not a JSON object: {type(body).__name__}")
    return body


def first_choice_text(response: dict) -> str:
    """Content of the first choice's message, or '' when the response has none."""
    choices = response.get("choices") or []
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""
