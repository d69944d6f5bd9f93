"""
Environment Variable Loader

Loads harvester settings from .env files before ScholarSettings reads os.environ.
"""

from __future__ import annotations

import logging
import os
from typing import List, Set

from dotenv import load_dotenv

logger = logging.getLogger('scholar_harvester.config.env_loader')

_SENSITIVE_MARKERS = ("KEY", "TOKEN", "SECRET", "PASSWORD")


def _get_runtime_env() -> str:
    """
    Runtime environment name used for env file selection.

    Priority:
    - SCHOLAR_ENV
    - development
    """
    raw = os.environ.get("SCHOLAR_ENV") or "development"
    return str(raw).strip().lower() or "development"


def _candidate_env_files(project_root: str, runtime_env: str) -> list[str]:
    """
    Build env file candidate list ordered from highest to lowest precedence.

    We use load_dotenv(..., override=False), so earlier files win and
    variables already exported in the process always take precedence.
    """
    names: List[str] = [
        f".env.{runtime_env}.local",
        ".env.local",
        f".env.{runtime_env}",
        ".env",
    ]

    candidates: List[str] = []
    for filename in names:
        candidates.append(os.path.join(project_root, filename))
        candidates.append(os.path.join(os.getcwd(), filename))

    seen: Set[str] = set()
    ordered: List[str] = []
    for p in candidates:
        p = os.path.abspath(p)
        if p in seen:
            continue
        seen.add(p)
        ordered.append(p)
    return ordered


def load_environment_variables(log_scholar_vars: bool = False) -> bool:
    """
    Load .env files from the project root and the working directory.

    Args:
        log_scholar_vars (bool): log SCHOLAR_* / SERPAPI_* variables (masked)

    Returns:
        bool: whether any .env file was loaded
    """
    loaded = False
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '../..'))
    runtime_env = _get_runtime_env()
    logger.debug("Resolved runtime env: %s", runtime_env)

    for path in _candidate_env_files(project_root, runtime_env):
        if not os.path.exists(path):
            continue
        try:
            load_dotenv(dotenv_path=path, override=False)
        except OSError as e:
            logger.error("Error loading env file %s: %s", path, e)
            continue
        logger.info("Loaded env file: %s", path)
        loaded = True

    if log_scholar_vars:
        log_scholar_environment_variables()

    return loaded


def log_scholar_environment_variables() -> None:
    scholar_vars = {
        k: v for k, v in os.environ.items() if k.startswith("SCHOLAR_") or k.startswith("SERPAPI") or k == "SERP_API_KEY"
    }
    if not scholar_vars:
        logger.info("No SCHOLAR_ environment variables set; using defaults")
        return
    for key in sorted(scholar_vars):
        logger.info("  %s: %s", key, mask_env_value(key, scholar_vars[key]))


def mask_env_value(key: str, value: str) -> str:
    if value is None:
        return ""

    key_upper = (key or "").upper()
    if any(s in key_upper for s in _SENSITIVE_MARKERS):
        return "***"

    v = str(value)
    if len(v) <= 6:
        return v
    return f"{v[:2]}***{v[-2:]}"
