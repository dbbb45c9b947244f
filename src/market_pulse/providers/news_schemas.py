from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NewsItem(BaseModel):
    id: str
    title: str
    summary: str = ""
    url: str
    source: Optional[str] = None
    published_at: datetime


class NewsFeed(BaseModel):
    items: list[NewsItem]
    fallback_used: bool = False
    provider_label: Optional[str] = None
    notice: Optional[str] = None
