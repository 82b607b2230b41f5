import os
import json
import base64
import logging
from typing import Any, Dict, Tuple

import groq_client
import site_prompts
from completion_extractor import InvalidCompletionJSON, extract_completion_json
from groq_client import UpstreamCallFailed, UpstreamUnavailable

# -------------------------------------------------
# Logging setup
# -------------------------------------------------
logger = logging.getLogger()
logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

DEBUG_EVENT = (os.getenv("DEBUG_EVENT", "false").strip().lower() == "true")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

GENERIC_FAILURE = "Failed to generate website content"


class BadRequest(ValueError):
    """A required request field is missing; raised before any upstream call."""


class MethodNotAllowed(Exception):
    pass


# -------------------------------------------------
# Generic HTTP / JSON helpers
# -------------------------------------------------
def _json_response(body_obj: Any, status_code: int = 200) -> dict:
    headers = {"Content-Type": "application/json"}
    headers.update(CORS_HEADERS)
    return {
        "statusCode": status_code,
        "body": "" if body_obj is None else json.dumps(body_obj, ensure_ascii=False),
        "headers": headers,
    }


def _get_http_method(event: dict) -> str:
    # REST API (v1) proxy events
    m = event.get("httpMethod")
    if m:
        return str(m).upper()

    # HTTP API (v2) / function URL events
    http = (event.get("requestContext", {}) or {}).get("http", {}) or {}
    m2 = http.get("method")
    if m2:
        return str(m2).upper()

    # Direct invocation
    return "POST"


def _is_http_event(event: dict) -> bool:
    return "httpMethod" in event or "requestContext" in event or "body" in event


def _parse_body(event: dict) -> Dict[str, Any]:
    if not _is_http_event(event):
        return event

    body_in = event.get("body")
    if isinstance(body_in, dict):
        return body_in
    if not isinstance(body_in, str) or not body_in.strip():
        return {}

    try:
        if event.get("isBase64Encoded"):
            body_in = base64.b64decode(body_in).decode("utf-8")
        parsed = json.loads(body_in)
    except ValueError:
        logger.warning("Request body is not valid JSON; treating as empty")
        return {}

    return parsed if isinstance(parsed, dict) else {}


# -------------------------------------------------
# Request validation
# -------------------------------------------------
def _text_field(params: Dict[str, Any], name: str) -> str:
    # Only JSON strings count as text; false/0/[]/{} are treated as missing.
    val = params.get(name)
    return val.strip() if isinstance(val, str) else ""


def _parse_generation_request(params: Dict[str, Any]) -> Dict[str, str]:
    project_name = _text_field(params, "project_name")
    ticker = _text_field(params, "ticker")
    if not project_name or not ticker:
        raise BadRequest("project_name and ticker are required")

    return {
        "project_name": project_name,
        "ticker": ticker,
        "vibe": site_prompts.normalize_vibe(params.get("vibe")),
        "optional_note": _text_field(params, "optional_note"),
    }


# -------------------------------------------------
# Generation
# -------------------------------------------------
def _generate_site_content(request: Dict[str, str]) -> Dict[str, Any]:
    variant = site_prompts.SCHEMA_VARIANT
    messages = site_prompts.build_messages(request, variant)

    response = groq_client.create_chat_completion(messages)
    raw_text = groq_client.first_choice_text(response)

    content = extract_completion_json(raw_text, clean=site_prompts.cleans_completion(variant))

    drift = site_prompts.describe_shape_drift(content, variant)
    if drift:
        logger.warning("Generated content for %s deviates from schema: %s", request["ticker"], "; ".join(drift))

    return content


def _handle_generate_website(params: Dict[str, Any]) -> Tuple[int, Any]:
    try:
        request = _parse_generation_request(params)
    except BadRequest as e:
        return 400, {"error": str(e)}

    logger.info(
        "Generating site content project=%s ticker=%s vibe=%s",
        request["project_name"], request["ticker"], request["vibe"],
    )

    try:
        return 200, _generate_site_content(request)
    except InvalidCompletionJSON as e:
        logger.error("Failed to parse JSON from Groq (%s): %s", e.reason, e.text[:2000])
        return 500, {"error": "AI returned invalid JSON", "rawText": e.text}
    except UpstreamUnavailable:
        logger.exception("Groq API timed out")
        return 504, {"error": GENERIC_FAILURE}
    except UpstreamCallFailed:
        logger.exception("Groq API error")
        return 500, {"error": GENERIC_FAILURE}


def _route(method: str) -> str:
    if method == "OPTIONS":
        return "preflight"
    if method != "POST":
        raise MethodNotAllowed(method)
    return "generate"


def lambda_handler(event, context):
    if DEBUG_EVENT:
        try:
            logger.info("RAW_EVENT_TYPE=%s", type(event))
            logger.info("RAW_EVENT_KEYS=%s", list(event.keys()) if isinstance(event, dict) else "NOT_A_DICT")
            if isinstance(event, dict):
                logger.info("RAW_EVENT_SAMPLE=%s", json.dumps(event, default=str)[:800])
        except Exception:
            logger.exception("Failed to log raw event")

    if not isinstance(event, dict):
        return _json_response({"error": "Unsupported event shape"}, 400)

    method = _get_http_method(event)

    try:
        route = _route(method)
    except MethodNotAllowed:
        return _json_response({"error": "Method not allowed"}, 405)

    if route == "preflight":
        return _json_response(None, 200)

    try:
        status, body = _handle_generate_website(_parse_body(event))
    except Exception:
        logger.exception("generateWebsite failed")
        status, body = 500, {"error": GENERIC_FAILURE}

    return _json_response(body, status)
