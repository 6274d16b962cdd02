from __future__ import annotations


def short_url(url: str) -> str:
    """Strip a leading http:// or https:// for display."""
    s = str(url or "")
    for prefix in ("http://", "https://"):
        if s.startswith(prefix):
            return s[len(prefix):]
    return s


def topic_url(base_url: str, topic: str) -> str:
    """Join a server base URL and a topic name into a topic key."""
    return f"{str(base_url or '').rstrip('/')}/{str(topic or '').strip('/')}"
