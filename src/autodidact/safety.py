"""Content-safety predicate for text served back to users."""

RESTRICTED_WORDS: tuple[str, ...] = (
    "illegal",
    "hacking tutorials",
    "malware",
    "exploit",
    "phishing",
    "password cracking",
    "ddos",
    "botnet",
    "ransomware",
    "keylogger",
)


def is_content_safe(content: str | None) -> bool:
    """False for empty content or content mentioning a restricted word."""
    if not content:
        return False
    lowered = content.lower()
    return not any(word in lowered for word in RESTRICTED_WORDS)
