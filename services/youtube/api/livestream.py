import httpx
from typing import Any, Dict, Optional

from core.models import LiveStatusSnapshot
from core.resolver import IdentifierResolver
from shared.logging.logger import get_logger

log = get_logger("youtube.livestream")


class YouTubeLivestreamAPI:
    """
    YouTube live status provider (Data API v3).

    Responsibilities:
    - Resolve legacy (non-canonical) identifiers before searching
    - Detect the active live broadcast for a channel
    - Return a normalized LiveStatusSnapshot

    Ordinary "offline" and "not found" outcomes are returned as snapshots,
    never raised. This module is read-only and safe to call repeatedly.
    """

    SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"
    WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

    def __init__(
        self,
        *,
        api_key: str,
        resolver: Optional[IdentifierResolver] = None,
        timeout: float = 15.0,
    ):
        if not api_key:
            raise RuntimeError("YouTube API key is required")
        self.api_key = api_key
        self.timeout = timeout
        self._resolver = resolver

    # ------------------------------------------------------------

    async def _canonical_id(self, channel_id: str) -> Optional[str]:
        if self._resolver is None or self._resolver.shape.is_canonical(channel_id):
            return channel_id

        log.info(f"[YouTube] {channel_id!r} is not canonical; resolving before status check")
        resolved = await self._resolver.resolve(channel_id)
        return resolved.channel_id if resolved else None

    async def get_status(self, channel_id: str) -> LiveStatusSnapshot:
        if not channel_id or not channel_id.strip():
            return LiveStatusSnapshot.failed(f"Invalid or empty YouTube identifier: {channel_id!r}")

        canonical = await self._canonical_id(channel_id.strip())
        if not canonical:
            return LiveStatusSnapshot.failed(f"Failed to resolve YouTube identifier: {channel_id}")

        params = {
            "part": "snippet",
            "channelId": canonical,
            "eventType": "live",
            "type": "video",
            "maxResults": 1,
            "key": self.api_key,
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                r = await client.get(self.SEARCH_URL, params=params)
                r.raise_for_status()
                data = r.json()
            except httpx.HTTPStatusError as e:
                message = _error_message(e.response)
                log.warning(f"[YouTube] Live status check for {canonical} failed: {message}")
                return LiveStatusSnapshot.failed(f"YouTube API Error: {message}")
            except Exception as e:
                log.warning(f"[YouTube] Live status check for {canonical} error: {e}")
                return LiveStatusSnapshot.failed("Failed to fetch stream status.")

        items = data.get("items") if isinstance(data, dict) else None
        if not items:
            log.debug(f"[YouTube] No active livestream for channel {canonical}")
            return LiveStatusSnapshot.offline()

        item = items[0]
        video_id = (item.get("id") or {}).get("videoId")
        snippet = item.get("snippet") or {}
        if not video_id:
            return LiveStatusSnapshot.failed("YouTube live search returned an item without a videoId")

        log.info(f"[YouTube] Live item for {canonical}: {snippet.get('title')!r}")

        return LiveStatusSnapshot(
            is_live=True,
            title=snippet.get("title"),
            started_at=snippet.get("publishedAt"),
            stream_url=self.WATCH_URL.format(video_id=video_id),
            thumbnail_url=_best_thumbnail(snippet.get("thumbnails")),
        )


def _best_thumbnail(thumbnails: Any) -> Optional[str]:
    if not isinstance(thumbnails, dict):
        return None
    for size in ("maxres", "high", "medium", "default"):
        entry = thumbnails.get(size)
        if isinstance(entry, dict) and entry.get("url"):
            return entry["url"]
    return None


def _error_message(response: httpx.Response) -> str:
    try:
        payload: Dict[str, Any] = response.json()
        error = payload.get("error") or {}
        if error.get("message"):
            return str(error["message"])
    except (ValueError, AttributeError):
        log.debug("[YouTube] Error response body was not a JSON error object")
    return f"{response.status_code} {response.reason_phrase}"
