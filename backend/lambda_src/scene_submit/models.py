from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from scene_submit.settings import SubmissionLimits

IMDB_ID_PATTERN = re.compile(r"tt[0-9]{7,9}")


class ValidationError(ValueError):
    """Raised when the submission cannot be accepted."""

    def __init__(self, code: str, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value).strip()


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_scene_path(raw: Any, limits: SubmissionLimits) -> Optional[str]:
    path = _text(raw)
    if not path:
        return None
    if path.startswith("/") or "\\" in path or ".." in path:
        return None
    if not path.startswith(limits.scene_path_prefix):
        return None
    if not path.endswith(limits.scene_path_suffix):
        return None
    if len(path) > limits.max_scene_path_length:
        return None
    return path


def reject_json_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def payload_size(payload: Mapping[str, Any]) -> int:
    compact = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return len(compact.encode("utf-8"))


@dataclass(frozen=True)
class SceneList:
    schema_version: int
    imdb_id: str
    scenes: List[Any]
    title: str = ""
    label: str = ""
    created_at: str = ""
    video_duration_ms: float = 0
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Any, limits: SubmissionLimits) -> "SceneList":
        if not isinstance(payload, Mapping):
            raise ValidationError("bad_request", "Missing scene_list object.")

        if _number(payload.get("schema_version")) != limits.schema_version:
            raise ValidationError(
                "bad_schema", f"scene_list.schema_version must be {limits.schema_version}."
            )

        imdb_id = _text(payload.get("imdb_id")).lower()
        if not IMDB_ID_PATTERN.fullmatch(imdb_id):
            raise ValidationError("bad_imdb_id", "scene_list.imdb_id must look like tt1234567.")

        scenes = payload.get("scenes")
        if not isinstance(scenes, list) or not scenes:
            raise ValidationError("no_scenes", "scene_list.scenes must be a non-empty array.")
        if len(scenes) > limits.max_scenes:
            raise ValidationError("too_many_scenes", "scene_list.scenes is too large.")

        return cls(
            schema_version=limits.schema_version,
            imdb_id=imdb_id,
            scenes=list(scenes),
            title=_text(payload.get("title")),
            label=_text(payload.get("label")),
            created_at=_text(payload.get("created_at")),
            video_duration_ms=cls._duration(payload.get("video_duration_ms")),
            raw=dict(payload),
        )

    @staticmethod
    def _duration(value: Any) -> float:
        number = _number(value)
        if number is None or number < 0:
            return 0
        if number.is_integer():
            return int(number)
        return number

    @property
    def display_name(self) -> str:
        return self.title or self.imdb_id

    def to_document(self) -> str:
        """Pretty-printed JSON committed to the scene path, exactly as submitted."""
        return json.dumps(self.raw, indent=2, ensure_ascii=False, allow_nan=False)


@dataclass(frozen=True)
class SubmissionRequest:
    scene_list: SceneList
    scene_path: str

    @classmethod
    def from_payload(cls, payload: Any, limits: SubmissionLimits | None = None) -> "SubmissionRequest":
        limits = limits or SubmissionLimits()
        if not isinstance(payload, Mapping):
            raise ValidationError("bad_request", "Missing scene_list object.")

        raw_scene_list = payload.get("scene_list")
        if not isinstance(raw_scene_list, Mapping):
            raise ValidationError("bad_request", "Missing scene_list object.")
        scene_list = SceneList.from_payload(raw_scene_list, limits)

        scene_path = normalize_scene_path(payload.get("scene_path"), limits)
        if scene_path is None:
            raise ValidationError(
                "bad_scene_path",
                f"scene_path must be under {limits.scene_path_prefix} and end with {limits.scene_path_suffix}.",
            )

        try:
            size = payload_size(payload)
            scene_list.to_document()
        except (ValueError, TypeError, RecursionError) as exc:
            raise ValidationError("bad_request", "scene_list must be plain JSON.") from exc
        if size > limits.max_payload_bytes:
            raise ValidationError("payload_too_large", "Payload too large.", status_code=413)

        return cls(scene_list=scene_list, scene_path=scene_path)


class IndexEntry(BaseModel):
    imdb_id: str
    title: str = ""
    path: str
    created_at: str = ""
    video_duration_ms: Union[int, float] = 0
    label: str = ""

    @classmethod
    def from_request(cls, request: SubmissionRequest) -> "IndexEntry":
        scene_list = request.scene_list
        return cls(
            imdb_id=scene_list.imdb_id,
            title=scene_list.title,
            path=request.scene_path,
            created_at=scene_list.created_at,
            video_duration_ms=scene_list.video_duration_ms,
            label=scene_list.label,
        )

    def to_item(self) -> Dict[str, Any]:
        return self.model_dump()


@dataclass
class IndexDocument:
    """The shared ``index.json`` listing every submitted scene list."""

    payload: Dict[str, Any]
    sha: Optional[str] = None

    @classmethod
    def from_text(cls, text: str, sha: Optional[str] = None) -> "IndexDocument":
        try:
            parsed = json.loads(text, parse_constant=reject_json_constant) if text.strip() else {}
        except (ValueError, RecursionError):
            parsed = {}
        if not isinstance(parsed, dict):
            parsed = {}
        if not isinstance(parsed.get("movies"), list):
            parsed["movies"] = []
        return cls(payload=parsed, sha=sha or None)

    @classmethod
    def empty(cls) -> "IndexDocument":
        return cls(payload={"movies": []})

    @property
    def movies(self) -> List[Any]:
        return self.payload["movies"]

    def append(self, entry: IndexEntry) -> None:
        self.movies.append(entry.to_item())

    def to_text(self) -> str:
        return json.dumps(self.payload, indent=2, ensure_ascii=False, allow_nan=False)
