#!/usr/bin/env python3
"""Submit a local scene-list JSON file to the deployed scene submission endpoint.

The endpoint is resolved from the CloudFormation stack outputs unless it is
passed explicitly; the shared submit key comes from ``--submit-key`` or the
``BLEEPR_SUBMIT_KEY`` environment variable. On success the pull request URL
is printed.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import requests


DEFAULT_STACK_NAME = "SceneSubmitStack-dev"
SCENE_PATH_PREFIX = "scenejsons/"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Open a pull request for a local scene list")
    parser.add_argument("scene_file", type=Path, help="Scene list JSON file (schema_version 2)")
    parser.add_argument(
        "--scene-path",
        help="Repository path for the file (default: scenejsons/<imdb_id>-<file name>)",
    )
    parser.add_argument("--stack-name", default=None, help="CloudFormation stack name used to resolve the endpoint")
    parser.add_argument("--profile", default=None, help="AWS profile for boto3 session")
    parser.add_argument("--region", default=None, help="AWS region override")
    parser.add_argument("--api-endpoint", help="Full submit endpoint URL (…/submit-scene)")
    parser.add_argument("--submit-key", help="Shared submit key sent as a bearer token")
    parser.add_argument("--timeout", type=float, default=60.0, help="Request timeout in seconds")
    return parser.parse_args(argv)


def default_scene_path(scene_list: Dict[str, Any], scene_file: Path) -> str:
    imdb_id = str(scene_list.get("imdb_id") or "").strip().lower()
    name = scene_file.name if scene_file.suffix == ".json" else f"{scene_file.stem}.json"
    if imdb_id and not name.startswith(imdb_id):
        name = f"{imdb_id}-{name}"
    return f"{SCENE_PATH_PREFIX}{name}"


def build_payload(scene_list: Dict[str, Any], scene_path: str) -> Dict[str, Any]:
    return {"scene_list": scene_list, "scene_path": scene_path}


def build_headers(submit_key: Optional[str]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if submit_key:
        headers["Authorization"] = f"Bearer {submit_key}"
    return headers


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    try:
        scene_list = json.loads(args.scene_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"❌  Unable to read {args.scene_file}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(scene_list, dict):
        print("❌  Scene list file must contain a JSON object", file=sys.stderr)
        sys.exit(1)

    endpoint = args.api_endpoint or os.getenv("BLEEPR_SUBMIT_ENDPOINT")
    if not endpoint:
        session = boto3.session.Session(profile_name=args.profile, region_name=args.region)
        try:
            endpoint = _resolve_endpoint(session, args.stack_name or DEFAULT_STACK_NAME)
        except Exception as exc:  # pragma: no cover - diagnostic only
            print(f"⚠️  Unable to load stack outputs: {exc}", file=sys.stderr)
    if not endpoint:
        print("Submit endpoint is required; pass --api-endpoint or provide a stack name.", file=sys.stderr)
        sys.exit(1)

    scene_path = args.scene_path or default_scene_path(scene_list, args.scene_file)
    response = requests.post(
        endpoint,
        json=build_payload(scene_list, scene_path),
        headers=build_headers(args.submit_key or os.getenv("BLEEPR_SUBMIT_KEY")),
        timeout=args.timeout,
    )
    try:
        result = response.json()
    except ValueError:
        result = {}

    if response.status_code != 200 or not result.get("ok"):
        error = result.get("error") or {}
        code = error.get("code") or response.status_code
        message = error.get("message") or response.text
        print(f"❌  Submission failed ({code}): {message}", file=sys.stderr)
        if error.get("details"):
            print(f"    {error['details']}", file=sys.stderr)
        sys.exit(1)

    print(f"✅  Pull request opened: {result.get('pr_url')}")


def _resolve_endpoint(session: boto3.session.Session, stack_name: str) -> Optional[str]:
    cf = session.client("cloudformation")
    stack = cf.describe_stacks(StackName=stack_name)["Stacks"][0]
    for entry in stack.get("Outputs", []):
        if entry["OutputKey"].startswith("SceneSubmitApiEndpoint"):
            return entry["OutputValue"]
    return None


if __name__ == "__main__":
    main()
