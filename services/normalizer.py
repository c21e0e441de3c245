"""
Entry Normalizer - maps parsed playlist entries to Channel, Stream and Category records

All functions are pure: the same entries always produce the same records.
"""

import re
from typing import Dict, List, Optional

from models import Category, Channel, Entry, Stream

DEFAULT_CATEGORY = "General"
UNKNOWN_COUNTRY = "Unknown"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Checked in this order; the first marker group found anywhere in the title wins
QUALITY_MARKERS = [
    ("4K", ("4K", "UHD")),
    ("1080p", ("FHD", "1080P")),
    ("720p", ("HD", "720P")),
    ("SD", ("SD",)),
]


def derive_id(label: str) -> str:
    """Lowercase, collapse every non-alphanumeric run into one '-', trim the edges"""
    return _NON_ALNUM_RE.sub("-", (label or "").lower()).strip("-")


def channel_id_for(entry: Entry) -> str:
    if entry.tvg_id:
        return entry.tvg_id
    return derive_id(entry.title) or "channel"


def detect_quality(title: Optional[str]) -> Optional[str]:
    """
    Detect a quality label from a stream title.

    The first matching marker group by priority wins, not the first marker in
    the text: "SD Feed (4K)" is "4K".
    """
    if not title:
        return None
    upper = title.upper()
    for label, markers in QUALITY_MARKERS:
        if any(marker in upper for marker in markers):
            return label
    return None


def to_channels(entries: List[Entry]) -> List[Channel]:
    """
    Build one Channel per distinct channel id.

    The first entry seen for an id sets name, country and logo; later entries
    for the same id only add categories and languages not yet present.
    """
    channels: Dict[str, Channel] = {}

    for entry in entries:
        channel_id = channel_id_for(entry)
        category = entry.group or DEFAULT_CATEGORY

        channel = channels.get(channel_id)
        if channel is None:
            channels[channel_id] = Channel(
                id=channel_id,
                name=entry.title,
                country=entry.country or UNKNOWN_COUNTRY,
                categories=[category],
                languages=[entry.language] if entry.language else [],
                logo=entry.logo,
            )
            continue

        if category not in channel.categories:
            channel.categories.append(category)
        if entry.language and entry.language not in channel.languages:
            channel.languages.append(entry.language)

    return list(channels.values())


def to_streams(entries: List[Entry]) -> List[Stream]:
    """One Stream per entry, in entry order"""
    return [
        Stream(
            channel=channel_id_for(entry),
            url=entry.url,
            title=entry.title,
            http_referrer=entry.http_referrer,
            user_agent=entry.user_agent,
            quality=detect_quality(entry.title),
            timeshift=entry.timeshift,
        )
        for entry in entries
    ]


def to_categories(entries: List[Entry]) -> List[Category]:
    """Distinct categories by derived id; entries without a group land in 'General'"""
    categories: Dict[str, Category] = {}
    for entry in entries:
        name = entry.group or DEFAULT_CATEGORY
        category_id = derive_id(name) or derive_id(DEFAULT_CATEGORY)
        if category_id not in categories:
            categories[category_id] = Category(id=category_id, name=name)
    return list(categories.values())
