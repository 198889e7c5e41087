"""Event envelope delivered to bus subscribers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class EventRecord:
    event_type: str
    payload: dict = field(default_factory=dict)
    user_id: Optional[int] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
