"""
Playlist parser - turns M3U text into Entry records

The format is line oriented: an #EXTINF metadata line carrying key="value"
tags and a trailing title, optionally followed by #EXTVLCOPT option lines,
then the stream URL on its own line.
"""

import re
from typing import Dict, List, Optional

from models import Entry

DEFAULT_TITLE = "Unknown Channel"

EXTINF_PREFIX = "#EXTINF"
EXTVLCOPT_PREFIX = "#EXTVLCOPT:"

# Unterminated quotes never match, so malformed tags are simply absent
ATTR_RE = re.compile(r'([A-Za-z][\w\-]*)="([^"]*)"')

URL_SCHEMES = ("http://", "https://", "rtmp://", "rtsp://", "udp://", "rtp://", "mms://")

# Playlist tag -> Entry field
TAG_FIELDS = {
    "tvg-id": "tvg_id",
    "tvg-name": "tvg_name",
    "tvg-logo": "logo",
    "group-title": "group",
    "tvg-country": "country",
    "tvg-language": "language",
    "timeshift": "timeshift",
}

# #EXTVLCOPT option -> Entry field
VLC_OPTION_FIELDS = {
    "http-referrer": "http_referrer",
    "http-user-agent": "user_agent",
}


def is_url_line(line: str) -> bool:
    return line.lower().startswith(URL_SCHEMES)


def parse_extinf(line: str) -> Dict[str, Optional[str]]:
    """
    Extract known tags and the title from an #EXTINF line.

    The title is the free text after the separating comma once every tag
    expression has been removed, so commas inside quoted values are safe.
    """
    meta: Dict[str, Optional[str]] = {}
    for key, value in ATTR_RE.findall(line):
        field_name = TAG_FIELDS.get(key.lower())
        value = value.strip()
        if field_name and value and field_name not in meta:
            meta[field_name] = value

    remainder = ATTR_RE.sub("", line)
    title = ""
    if "," in remainder:
        title = remainder.split(",", 1)[1].strip()
    meta["title"] = title or DEFAULT_TITLE
    return meta


def parse_vlc_option(line: str) -> Optional[tuple]:
    """Return (field, value) for a supported #EXTVLCOPT line, else None."""
    option = line[len(EXTVLCOPT_PREFIX) :].strip()
    if "=" not in option:
        return None
    key, value = option.split("=", 1)
    field_name = VLC_OPTION_FIELDS.get(key.strip().lower())
    value = value.strip()
    if not field_name or not value:
        return None
    return field_name, value


def parse_playlist(text: str) -> List[Entry]:
    """
    Parse playlist text into entries.

    Never raises: garbage lines are skipped, so the result is empty for a
    completely unusable document and partial for a partially broken one.
    A URL line without a preceding #EXTINF line is dropped.
    """
    entries: List[Entry] = []
    pending: Optional[Dict[str, Optional[str]]] = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith(EXTINF_PREFIX):
            pending = parse_extinf(line)
            continue

        if upper.startswith(EXTVLCOPT_PREFIX):
            if pending is not None:
                option = parse_vlc_option(line)
                if option:
                    pending.setdefault(option[0], option[1])
            continue

        if line.startswith("#"):
            continue

        if is_url_line(line):
            if pending is not None:
                entries.append(Entry(url=line, **pending))
            pending = None

    return entries
