"""Logging with request correlation and credential masking."""

from .logging import (
    SensitiveDataMasker,
    get_request_id,
    mask_sensitive_data,
    setup_logging,
)

__all__ = ["SensitiveDataMasker", "get_request_id", "mask_sensitive_data", "setup_logging"]
