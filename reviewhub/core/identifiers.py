"""Utilities for generating identifiers used across the service."""

from __future__ import annotations

import uuid


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def new_job_id() -> str:
    return f"wj_{uuid.uuid4().hex}"


def new_execution_id() -> str:
    return str(uuid.uuid4())
