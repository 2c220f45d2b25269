from __future__ import annotations

import re
from urllib.parse import quote


GLOBAL_TOPIC = "all_alerts"
CITY_TOPIC_SUFFIX = "_alerts"

_WHITESPACE = re.compile(r"\s+")


def city_topic(city: str, suffix: str = CITY_TOPIC_SUFFIX) -> str:
    """Topic name for a city. Device subscriptions must derive it the same way.

    FCM topics only allow ``[a-zA-Z0-9-_.~%]``, so anything else is
    percent-encoded as UTF-8 (``"Muzaffarabad (AJK)"`` becomes
    ``muzaffarabad_%28ajk%29_alerts``).
    """
    name = _WHITESPACE.sub("_", city.strip().lower())
    return quote(name, safe="") + suffix


def audience_topics(
    city: str | None,
    global_topic: str = GLOBAL_TOPIC,
    suffix: str = CITY_TOPIC_SUFFIX,
) -> list[str]:
    topics = [global_topic]
    if city and city.strip():
        topics.append(city_topic(city, suffix))
    return topics
