"""Ranks keywords from unanswered queries into improvement goals."""

import logging
from collections import Counter

from autodidact.store.query_log import QueryLog

logger = logging.getLogger(__name__)

RECENT_FAILURES = 10
MIN_KEYWORD_LENGTH = 4
MAX_GOALS = 3


class PerformanceAnalyzer:
    """Turns the recent failed-query log into a short list of goals."""

    def __init__(
        self,
        query_log: QueryLog,
        *,
        window: int = RECENT_FAILURES,
        max_goals: int = MAX_GOALS,
        min_keyword_length: int = MIN_KEYWORD_LENGTH,
    ) -> None:
        """Initialize with the query log to read."""
        self.query_log = query_log
        self.window = window
        self.max_goals = max_goals
        self.min_keyword_length = min_keyword_length

    async def analyze(self) -> list[str]:
        """Most frequent failed-query keywords, most frequent first.

        Ties keep first-seen order (newest query first). No failures is a
        normal outcome and yields an empty list.
        """
        failures = await self.query_log.recent_failures(self.window)
        if not failures:
            logger.info("No failed queries to learn from")
            return []

        logger.info("Found %d failed queries to learn from", len(failures))
        counts = Counter(
            keyword
            for entry in failures
            for keyword in entry.keywords
            if keyword and len(keyword) >= self.min_keyword_length
        )
        return [keyword for keyword, _ in counts.most_common(self.max_goals)]
