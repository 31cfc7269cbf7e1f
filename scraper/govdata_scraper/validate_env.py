"""Fail-fast environment validation for the ingestion worker and API.

Runs once per process before settings are built so misconfigured
deployments fail at startup instead of halfway through a vacuum run.
Every problem found is reported in a single error.
"""

from __future__ import annotations

import os
from functools import lru_cache
from urllib.parse import urlparse

import structlog

ALLOWED_ENVIRONMENTS = ("development", "staging", "production")
SERVICE_ROLES = ("api", "beat", "worker")
ROLES_NEEDING_REDIS = ("beat", "worker")
LOCAL_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0")


def _env(name: str) -> str | None:
    value = os.getenv(name)
    return value.strip() if value and value.strip() else None


def has_sam_api_key() -> bool:
    """SAM.gov sources accept either SAM_API_KEY or the shared DATA_GOV_KEY."""
    return bool(_env("SAM_API_KEY") or _env("DATA_GOV_KEY"))


def _production_url_problems(name: str, url: str) -> list[str]:
    parsed = urlparse(url)
    if not parsed.hostname:
        return [f"{name} has no hostname."]
    problems = []
    if parsed.hostname in LOCAL_HOSTS:
        problems.append(f"{name} points at localhost in production.")
    if parsed.username == "postgres" and parsed.password == "postgres":
        problems.append(f"{name} uses default postgres credentials in production.")
    return problems


def collect_problems() -> list[str]:
    problems: list[str] = []

    environment = _env("ENVIRONMENT")
    if environment is None:
        problems.append("ENVIRONMENT is required.")
    elif environment not in ALLOWED_ENVIRONMENTS:
        problems.append(f"ENVIRONMENT must be one of: {', '.join(ALLOWED_ENVIRONMENTS)}.")

    role = _env("SERVICE_ROLE") or "worker"
    if role not in SERVICE_ROLES:
        problems.append(f"SERVICE_ROLE must be one of: {', '.join(SERVICE_ROLES)}.")

    database_url = _env("DATABASE_URL")
    if database_url is None:
        problems.append("DATABASE_URL is required.")

    if environment == "production":
        if database_url:
            problems.extend(_production_url_problems("DATABASE_URL", database_url))
        if role in ROLES_NEEDING_REDIS:
            redis_url = _env("REDIS_URL")
            if redis_url is None:
                problems.append(f"REDIS_URL is required for the {role} role.")
            else:
                problems.extend(_production_url_problems("REDIS_URL", redis_url))
    return problems


@lru_cache(maxsize=1)
def validate_env() -> None:
    """Raise ``RuntimeError`` listing every configuration problem.

    ``SERVICE_ROLE`` is ``worker`` (default), ``beat`` or ``api``; only the
    Celery roles need Redis. A missing SAM.gov key is a warning: SAM-backed
    sources are skipped at run time and the skip shows up in the run errors.
    """
    problems = collect_problems()
    if problems:
        raise RuntimeError("Invalid environment: " + " ".join(problems))

    if not has_sam_api_key():
        structlog.get_logger("govdata-scraper").warning(
            "sam_api_key_missing",
            detail="SAM.gov sources will be skipped until SAM_API_KEY or DATA_GOV_KEY is set.",
        )
