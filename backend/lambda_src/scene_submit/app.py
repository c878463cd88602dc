from __future__ import annotations

import hmac
import logging
from typing import Any, Dict

from scene_submit.github_auth import AuthConfigError, CredentialError
from scene_submit.http import (
    HttpRequestParser,
    cors_preflight_response,
    json_error,
    not_found,
    pull_request_opened,
    unauthorized,
)
from scene_submit.models import SubmissionRequest, ValidationError
from scene_submit.settings import SubmitSettings
from scene_submit.workflow import SubmissionError, SubmissionWorkflow

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SUBMIT_PATH = "/submit-scene"


class SceneSubmitApplication:
    """Coordinates request checks, validation, and the pull request workflow."""

    def __init__(
        self,
        settings: SubmitSettings | None = None,
        workflow: SubmissionWorkflow | None = None,
        request_parser: HttpRequestParser | None = None,
    ) -> None:
        self._settings = settings or SubmitSettings.from_env()
        self._workflow = workflow or SubmissionWorkflow.from_settings(self._settings)
        self._parser = request_parser or HttpRequestParser()

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Scene submission event received")
        method = self._parser.method(event)
        if method == "OPTIONS":
            return cors_preflight_response()
        if method != "POST" or self._parser.path(event) != SUBMIT_PATH:
            return not_found()

        if not self._is_authorized(event):
            logger.warning("Rejected submission with missing or invalid bearer token")
            return unauthorized()

        try:
            payload = self._parser.parse(event)
            request = SubmissionRequest.from_payload(payload, self._settings.limits)
        except ValidationError as exc:
            logger.info("Rejected submission: %s", exc.code)
            return json_error(exc.status_code, exc.code, exc.message)

        logger.info(
            "Submitting scene list %s to %s", request.scene_list.imdb_id, request.scene_path
        )
        try:
            result = self._workflow.submit(request)
        except AuthConfigError as exc:
            logger.error("GitHub App credentials are not configured: %s", exc)
            return json_error(500, exc.code, "GitHub App credentials are not configured.", str(exc))
        except CredentialError as exc:
            logger.warning("Failed to mint installation token: %s", exc)
            return json_error(500, exc.code, "Failed to mint GitHub installation token.", str(exc))
        except SubmissionError as exc:
            logger.warning("Submission for %s failed: %s", request.scene_list.imdb_id, exc)
            return json_error(500, exc.code, "Failed to create pull request.", str(exc))

        return pull_request_opened(result.pr_url)

    def _is_authorized(self, event: Dict[str, Any]) -> bool:
        submit_key = self._settings.submit_key
        if not submit_key:
            return True
        supplied = self._parser.header(event, "authorization")
        return hmac.compare_digest(supplied.encode("utf-8"), f"Bearer {submit_key}".encode("utf-8"))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # pragma: no cover - AWS entry
    return SceneSubmitApplication().handle_event(event)
