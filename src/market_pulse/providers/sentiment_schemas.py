from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class FearGreedEntry(BaseModel):
    value: float
    classification: str = "Neutral"
    timestamp: datetime


class FearGreedHistory(BaseModel):
    variant: str
    entries: list[FearGreedEntry]
    fallback_used: bool = False
    provider_label: Optional[str] = None
    notice: Optional[str] = None

    @property
    def latest(self) -> Optional[FearGreedEntry]:
        return self.entries[0] if self.entries else None
