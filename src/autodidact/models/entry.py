"""Knowledge entry models."""

from datetime import datetime

from pydantic import BaseModel, Field

MAX_CONTENT_CHARS = 2000

DEFAULT_CONFIDENCE = 0.7


class KnowledgeEntry(BaseModel):
    """Extracted text for one topic from one source.

    One row exists per (topic, source) pair; repeated fetches merge into it.
    """

    id: int | None = None
    topic: str
    source: str = "unknown"
    content: str = Field(max_length=MAX_CONTENT_CHARS)
    # Accumulates without an upper bound. The intended range is presumably
    # [0, 1] but capping would change the corroboration count it encodes.
    confidence: float = DEFAULT_CONFIDENCE
    last_updated: datetime | None = None
    access_count: int = 0
