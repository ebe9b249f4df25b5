"""Meeting value returned by the conferencing provider."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Meeting:
    id: str
    meeting_url: str
    password: Optional[str] = None
