from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    name: str
    code: str
    instructor_id: str
    created_at: datetime
