from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest

root_dir = Path(__file__).resolve().parents[2]
for extra in (
    root_dir / "backend" / "lambda_src",
    root_dir / "backend" / "lambda_src" / "common_layer" / "python",
    root_dir / "scripts",
):
    if str(extra) not in sys.path:
        sys.path.insert(0, str(extra))


FIXED_NOW = datetime(2024, 8, 12, 18, 0, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text


class FakeSession:
    """Stands in for ``requests.Session``; answers by (method, path) and records calls."""

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, data=None, params=None, timeout=None):
        path = urlsplit(url).path
        self.calls.append(
            {
                "method": method,
                "url": url,
                "path": path,
                "headers": dict(headers or {}),
                "json": json.loads(data) if data else None,
                "params": dict(params or {}),
                "timeout": timeout,
            }
        )
        outcome = self.routes.get((method, path))
        if outcome is None:
            return FakeResponse(404, {"message": "Not Found"})
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def steps(self) -> List[Tuple[str, str]]:
        return [(call["method"], call["path"]) for call in self.calls]


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def scene_payload() -> Dict[str, Any]:
    return {
        "scene_list": {
            "schema_version": 2,
            "imdb_id": "tt1234567",
            "title": "The Example",
            "label": "family",
            "created_at": "2024-08-12T18:00:00Z",
            "video_duration_ms": 5400000,
            "scenes": [{"start_ms": 1000, "end_ms": 2000, "tags": ["language"]}],
        },
        "scene_path": "scenejsons/x.json",
    }
