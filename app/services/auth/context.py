"""Explicit per-request caller context passed into each pipeline stage."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class AnalysisContext:
    user_id: UUID
    session_token: Optional[str] = None
