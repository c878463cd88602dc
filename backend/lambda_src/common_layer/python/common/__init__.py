"""Shared utilities for Lambda functions."""

from .ssm import get_parameter, resolve_secret
from .time_utils import ensure_utc, epoch_millis, epoch_seconds, utc_now

__all__ = [
    "ensure_utc",
    "epoch_millis",
    "epoch_seconds",
    "get_parameter",
    "resolve_secret",
    "utc_now",
]
