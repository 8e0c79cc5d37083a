"""Query log models."""

from datetime import datetime

from pydantic import BaseModel, Field


class QueryLogEntry(BaseModel):
    """One inbound query and whether it was answered."""

    id: int | None = None
    query: str
    keywords: list[str] = Field(default_factory=list)
    success: bool = False
    timestamp: datetime | None = None
