from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from scene_submit.models import ValidationError, reject_json_constant


_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: Dict[str, Any] | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": {**_CORS_HEADERS, "Content-Type": "application/json"},
            "body": json.dumps(self.body or {}),
        }


class HttpRequestParser:
    """Extracts method, path, headers and JSON payload from API Gateway proxy events."""

    def method(self, event: Dict[str, Any]) -> str:
        method = event.get("httpMethod")
        if not method:
            method = event.get("requestContext", {}).get("http", {}).get("method", "")
        return str(method).upper()

    def path(self, event: Dict[str, Any]) -> str:
        path = str(event.get("path") or event.get("rawPath") or "")
        if path.endswith("/"):
            path = path[:-1]
        return path

    def header(self, event: Dict[str, Any], name: str) -> str:
        headers = event.get("headers") or {}
        wanted = name.lower()
        for key, value in headers.items():
            if str(key).lower() == wanted:
                return str(value or "")
        return ""

    def parse(self, event: Dict[str, Any]) -> Any:
        body = event.get("body")
        if body is None:
            raise ValidationError("bad_json", "Body must be valid JSON.")

        if isinstance(body, (dict, list)):
            return body

        if event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(body).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise ValidationError("bad_json", "Body must be valid JSON.") from exc

        if isinstance(body, str):
            try:
                return json.loads(body, parse_constant=reject_json_constant)
            except (ValueError, RecursionError) as exc:
                raise ValidationError("bad_json", "Body must be valid JSON.") from exc

        raise ValidationError("bad_json", "Body must be valid JSON.")


def cors_preflight_response() -> Dict[str, Any]:
    return {
        "statusCode": 204,
        "headers": {
            **_CORS_HEADERS,
            "Access-Control-Allow-Methods": "POST,OPTIONS",
        },
        "body": "",
    }


def json_error(status_code: int, code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body = {"ok": False, "error": {"code": code, "message": message, "details": details}}
    return HttpResponse(status_code=status_code, body=body).to_payload()


def not_found() -> Dict[str, Any]:
    return json_error(404, "not_found", "Not found.")


def unauthorized() -> Dict[str, Any]:
    return json_error(401, "unauthorized", "Missing or invalid Authorization bearer token.")


def pull_request_opened(pr_url: str) -> Dict[str, Any]:
    return HttpResponse(status_code=200, body={"ok": True, "pr_url": pr_url}).to_payload()
