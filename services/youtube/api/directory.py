import httpx
from typing import Any, Dict, Optional

from core.models import ResolvedIdentity
from shared.logging.logger import get_logger

log = get_logger("youtube.directory")


class YouTubeDirectoryAPI:
    """
    YouTube channel directory lookups (Data API v3).

    Responsibilities:
    - channels.list by id / forHandle / forUsername
    - search.list restricted to channel results

    Every method returns a ResolvedIdentity or None. HTTP failures, quota
    errors and malformed payloads are logged and reported as None so the
    identifier resolver can move on to its next strategy.
    """

    CHANNELS_URL = "https://www.googleapis.com/youtube/v3/channels"
    SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"

    def __init__(self, *, api_key: str, timeout: float = 15.0):
        if not api_key:
            raise RuntimeError("YouTube API key is required")
        self.api_key = api_key
        self.timeout = timeout

    # ------------------------------------------------------------

    async def _get(self, url: str, params: Dict[str, Any], what: str) -> Optional[Dict[str, Any]]:
        params = {**params, "key": self.api_key}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                r = await client.get(url, params=params)
                r.raise_for_status()
                data = r.json()
            except httpx.HTTPStatusError as e:
                log.warning(
                    f"YouTube {what} failed: "
                    f"{e.response.status_code} {_api_error_message(e.response)}"
                )
                return None
            except Exception as e:
                log.warning(f"YouTube {what} error: {e}")
                return None

        if not isinstance(data, dict):
            log.warning(f"YouTube {what} returned a non-object payload")
            return None
        return data

    @staticmethod
    def _first_channel(data: Optional[Dict[str, Any]]) -> Optional[ResolvedIdentity]:
        if not data:
            return None
        items = data.get("items") or []
        if not items:
            return None

        item = items[0]
        channel_id = item.get("id")
        title = (item.get("snippet") or {}).get("title")
        if not isinstance(channel_id, str) or not title:
            return None
        return ResolvedIdentity(channel_id=channel_id, channel_name=title)

    # ------------------------------------------------------------
    # Directory interface
    # ------------------------------------------------------------

    async def lookup_by_id(self, channel_id: str) -> Optional[ResolvedIdentity]:
        data = await self._get(
            self.CHANNELS_URL,
            {"part": "snippet", "id": channel_id},
            f"channel lookup by id {channel_id!r}",
        )
        return self._first_channel(data)

    async def lookup_by_handle(self, handle: str) -> Optional[ResolvedIdentity]:
        data = await self._get(
            self.CHANNELS_URL,
            {"part": "snippet", "forHandle": handle.lstrip("@")},
            f"channel lookup by handle @{handle}",
        )
        return self._first_channel(data)

    async def lookup_by_username(self, username: str) -> Optional[ResolvedIdentity]:
        data = await self._get(
            self.CHANNELS_URL,
            {"part": "snippet", "forUsername": username},
            f"channel lookup by username {username!r}",
        )
        return self._first_channel(data)

    async def search_by_text(self, query: str) -> Optional[ResolvedIdentity]:
        data = await self._get(
            self.SEARCH_URL,
            {"part": "snippet", "q": query, "type": "channel", "maxResults": 1},
            f"channel search {query!r}",
        )
        if not data:
            return None

        items = data.get("items") or []
        if not items:
            return None

        item = items[0]
        channel_id = (item.get("id") or {}).get("channelId")
        title = (item.get("snippet") or {}).get("title")
        if not isinstance(channel_id, str) or not title:
            return None
        return ResolvedIdentity(channel_id=channel_id, channel_name=title)


def _api_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.reason_phrase
