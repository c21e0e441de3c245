"""
Stream Selector - picks the best cached stream for a channel
"""

from typing import List, Optional

from models import Stream
from services.stream_cache import StreamCache

# Score bonus for adaptive-segment (HLS) streams
HLS_BONUS = 10


class StreamSelector:
    """Ranks a channel's streams by health score plus format preference"""

    def __init__(self, cache: StreamCache):
        self.cache = cache

    def score(self, stream: Stream) -> int:
        return self.cache.get_health(stream.url) + (HLS_BONUS if stream.is_hls else 0)

    def rank_streams(self, channel_id: str) -> List[Stream]:
        """
        All streams of a channel, best first.

        Sorting is stable, so equally scored streams keep their cache order.
        Pure read of cached state; no network activity.
        """
        candidates = [s for s in self.cache.get_streams() if s.channel == channel_id]
        return sorted(candidates, key=self.score, reverse=True)

    def best_stream_for(self, channel_id: str) -> Optional[Stream]:
        """Top-ranked stream for a channel, or None when it has no streams"""
        ranked = self.rank_streams(channel_id)
        return ranked[0] if ranked else None
