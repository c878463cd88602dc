from __future__ import annotations

import logging
from typing import Any, Optional

import boto3

_logger = logging.getLogger(__name__)
_ssm_client = None
_parameter_cache: dict[str, str] = {}


def _client():
    global _ssm_client
    if _ssm_client is None:
        _ssm_client = boto3.client("ssm")
    return _ssm_client


def get_parameter(name: str, *, decrypt: bool = True, cache: bool = True, client: Any = None) -> str:
    """Fetch a parameter value from SSM (with optional caching)."""
    if not name:
        raise ValueError("Parameter name cannot be empty")
    if cache and name in _parameter_cache:
        return _parameter_cache[name]
    response = (client or _client()).get_parameter(Name=name, WithDecryption=decrypt)
    value: str = response["Parameter"]["Value"]
    if cache:
        _parameter_cache[name] = value
    _logger.info("Loaded SSM parameter %s", name)
    return value


def resolve_secret(value: Optional[str], parameter_name: Optional[str], *, client: Any = None) -> str:
    """Return an inline secret, or read it from SSM when only a parameter name is set."""
    if value and value.strip():
        return value
    if not parameter_name:
        return ""
    return get_parameter(parameter_name, client=client)


def clear_cache() -> None:
    _parameter_cache.clear()
