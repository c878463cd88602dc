#!/usr/bin/env python3
"""
Push the scene submission secrets into AWS Systems Manager Parameter Store.

Usage:
    python scripts/sync_env_to_ssm.py --stage dev --private-key-file app.private-key.pem

Each variable in the .env file is written to:
    <prefix>/<STAGE>/<KEY>  (upper-case key)

The GitHub App private key is multi-line, so it is read from its own PEM
file and stored as GITHUB_PRIVATE_KEY_PEM. Values are stored as
SecureString parameters with overwrite enabled by default.
"""

from __future__ import annotations

import argparse
import pathlib
from typing import Iterable

import boto3

PRIVATE_KEY_NAME = "GITHUB_PRIVATE_KEY_PEM"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync scene submission secrets to AWS SSM Parameter Store.")
    parser.add_argument(
        "--env-file",
        type=pathlib.Path,
        default=pathlib.Path(".env"),
        help="Path to the .env file (default: %(default)s)",
    )
    parser.add_argument(
        "--private-key-file",
        type=pathlib.Path,
        default=None,
        help="GitHub App private key (PEM) to store as GITHUB_PRIVATE_KEY_PEM",
    )
    parser.add_argument(
        "--prefix",
        default="/bleepr/env",
        help="Base prefix for parameters (default: %(default)s)",
    )
    parser.add_argument(
        "--stage",
        default=None,
        help="Stage suffix to append to the prefix (optional)",
    )
    parser.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Do not overwrite existing parameters (default: overwrite).",
    )
    return parser.parse_args(argv)


def load_env(path: pathlib.Path) -> dict[str, str]:
    if not path.exists():
        return {}
    result: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        result[key.strip().upper()] = value.strip().strip('"').strip("'")
    return result


def load_private_key(path: pathlib.Path) -> str:
    text = path.read_text(encoding="utf-8").strip()
    if "PRIVATE KEY-----" not in text:
        raise ValueError(f"{path} does not look like a PEM private key")
    return text + "\n"


def ensure_trailing_slash(prefix: str) -> str:
    return prefix if prefix.endswith("/") else prefix + "/"


def parameter_prefix(prefix: str, stage: str | None) -> str:
    base_prefix = ensure_trailing_slash(prefix)
    if not stage:
        return base_prefix
    return f"{base_prefix}{ensure_trailing_slash(stage.upper())}"


def put_parameters(
    client,
    items: Iterable[tuple[str, str]],
    prefix: str,
    overwrite: bool,
) -> None:
    for key, value in items:
        name = f"{prefix}{key}"
        client.put_parameter(
            Name=name,
            Value=value,
            Type="SecureString",
            Overwrite=overwrite,
        )
        print(f"✅  {name}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    values = load_env(args.env_file)
    if args.private_key_file:
        values[PRIVATE_KEY_NAME] = load_private_key(args.private_key_file)
    if not values:
        print("No secrets found; nothing to upload.")
        return

    full_prefix = parameter_prefix(args.prefix, args.stage)
    client = boto3.client("ssm")
    put_parameters(client, values.items(), full_prefix, overwrite=not args.no_overwrite)
    print(f"\nUploaded {len(values)} parameters under {full_prefix}")


if __name__ == "__main__":
    main()
