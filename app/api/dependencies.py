"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and admission control.
"""

from __future__ import annotations

import logging
import re

from fastapi import Depends, File, HTTPException, Request, UploadFile, status

from app.services.rate_limiter import TokenBucketRateLimiter, get_insights_rate_limiter

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
}

RATE_LIMIT_RETRY_AFTER_SECONDS = 60

_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"sk-ant-[A-Za-z0-9\-_]+"), "[REDACTED_API_KEY]"),
    (re.compile(r"sk-[A-Za-z0-9\-_]{16,}"), "[REDACTED_API_KEY]"),
    (re.compile(r"[A-Za-z]:\\\S+"), "[PATH]"),
    (re.compile(r"/\S+\.(?:csv|json|env)", re.IGNORECASE), "[PATH]"),
    (re.compile(r"password[=:]\s*\S+", re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r"token[=:]\s*\S+", re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r"secret[=:]\s*\S+", re.IGNORECASE), "secret=[REDACTED]"),
)


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    is_csv_filename = filename.endswith(".csv")
    is_csv_content_type = content_type in CSV_CONTENT_TYPES

    if not is_csv_filename and not is_csv_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload a CSV file.",
        )

    return file


def get_client_ip(request: Request) -> str:
    """
    Resolve the caller address: first X-Forwarded-For hop, then X-Real-IP,
    then the socket peer.
    """

    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for.strip():
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_insights_rate_limit(
    client_ip: str = Depends(get_client_ip),
    limiter: TokenBucketRateLimiter = Depends(get_insights_rate_limiter),
) -> str:
    """
    Consume one token for the caller or reject with 429 and Retry-After.
    """

    if not limiter.check_limit(client_ip):
        logger.warning("Insights rate limit exceeded client=%s", client_ip)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Rate limit exceeded",
                "details": (
                    "Too many requests. Please wait a moment and try again. "
                    f"Limit: {limiter.capacity} requests per minute."
                ),
            },
            headers={"Retry-After": str(RATE_LIMIT_RETRY_AFTER_SECONDS)},
        )
    return client_ip


def sanitize_error_message(message: str) -> str:
    """
    Redact API keys, file paths and credential pairs before logging.
    """

    sanitized = message
    for pattern, replacement in _REDACTIONS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
