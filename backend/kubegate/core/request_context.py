"""
Request-scoped context variables.

Lets log records carry the request_id without threading it through service code.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
