import asyncio
import re
import time
from typing import Any, Dict, Optional

import httpx

from core.errors import InvalidIdentifier, ProviderError
from core.models import LiveStatusSnapshot, ResolvedIdentity
from shared.logging.logger import get_logger

log = get_logger("twitch.helix")

_LOGIN_FROM_URL = re.compile(r"twitch\.tv/([^/?#&]+)", re.IGNORECASE)


def parse_twitch_login(reference: str) -> str:
    """
    Extract a Twitch login from a channel URL, "@login" or bare login.

    Raises InvalidIdentifier for blank input.
    """
    if not reference or not reference.strip():
        raise InvalidIdentifier("Twitch channel reference must be a non-empty string")

    value = reference.strip()
    match = _LOGIN_FROM_URL.search(value)
    if match:
        value = match.group(1)
    return value.lstrip("@").lower()


class TwitchHelixAPI:
    """
    Twitch Helix client for live status and channel lookup.

    Responsibilities:
    - Obtain and cache an app access token (client credentials)
    - Refresh the token 60s before expiry, and drop it on a 401
    - Query /helix/streams and /helix/users

    Status queries report failures through LiveStatusSnapshot.error rather
    than raising.
    """

    TOKEN_URL = "https://id.twitch.tv/oauth2/token"
    STREAMS_URL = "https://api.twitch.tv/helix/streams"
    USERS_URL = "https://api.twitch.tv/helix/users"

    TOKEN_REFRESH_MARGIN = 60.0  # seconds

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        timeout: float = 15.0,
    ):
        if not client_id or not client_secret:
            raise RuntimeError("Twitch client id and secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout

        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0
        self._token_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Auth
    # ------------------------------------------------------------------ #

    def invalidate_token(self) -> None:
        self._access_token = None
        self._token_expiry = 0.0

    async def get_app_access_token(self) -> str:
        async with self._token_lock:
            now = time.time()
            if self._access_token and self._token_expiry > now + self.TOKEN_REFRESH_MARGIN:
                return self._access_token

            log.info("Fetching new Twitch app access token")
            params = {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            }

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                try:
                    r = await client.post(self.TOKEN_URL, params=params)
                    r.raise_for_status()
                    data = r.json()
                except httpx.HTTPError as e:
                    raise ProviderError(f"Twitch token request failed: {e}") from e
                except ValueError as e:
                    raise ProviderError(f"Twitch token response was not JSON: {e}") from e

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                raise ProviderError("Twitch token response did not include an access_token")

            self._access_token = token
            self._token_expiry = now + float(data.get("expires_in") or 0)
            log.info("Obtained Twitch app access token")
            return token

    async def _helix_get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        token = await self.get_app_access_token()
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}",
        }

        async with httpx.AsyncClient(timeout=self.timeout, headers=headers) as client:
            try:
                r = await client.get(url, params=params)
                r.raise_for_status()
                data = r.json()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 401:
                    self.invalidate_token()
                    log.warning("Twitch token rejected (401); cleared for refresh")
                raise ProviderError(
                    f"{e.response.status_code} {e.response.reason_phrase}"
                ) from e
            except httpx.HTTPError as e:
                raise ProviderError(str(e)) from e
            except ValueError as e:
                raise ProviderError(f"Invalid JSON from Twitch API: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise ProviderError("Unexpected response structure from Twitch API")
        return data

    # ------------------------------------------------------------------ #
    # Status provider
    # ------------------------------------------------------------------ #

    async def get_status(self, channel_id: str) -> LiveStatusSnapshot:
        try:
            login = parse_twitch_login(channel_id)
        except InvalidIdentifier as e:
            return LiveStatusSnapshot.failed(str(e))

        try:
            data = await self._helix_get(self.STREAMS_URL, {"user_login": login})
        except ProviderError as e:
            log.warning(f"[Twitch] Status check for {login} failed: {e}")
            return LiveStatusSnapshot.failed(f"Twitch API Error: {e}")

        streams = data["data"]
        if not streams:
            return LiveStatusSnapshot.offline()

        stream = streams[0]
        thumbnail = stream.get("thumbnail_url")
        if isinstance(thumbnail, str):
            thumbnail = thumbnail.replace("{width}x{height}", "1920x1080")

        return LiveStatusSnapshot(
            is_live=True,
            title=stream.get("title"),
            started_at=stream.get("started_at"),
            stream_url=f"https://www.twitch.tv/{stream.get('user_login') or login}",
            thumbnail_url=thumbnail or None,
        )

    # ------------------------------------------------------------------ #
    # Channel lookup
    # ------------------------------------------------------------------ #

    async def get_channel_info(self, reference: str) -> Optional[ResolvedIdentity]:
        """
        Look up a channel by URL or login.

        Returns None when Twitch reports no such user; raises ProviderError
        when the lookup itself failed.
        """
        login = parse_twitch_login(reference)
        data = await self._helix_get(self.USERS_URL, {"login": login})
        users = data["data"]
        if not users:
            return None

        user = users[0]
        return ResolvedIdentity(
            channel_id=user.get("login") or login,
            channel_name=user.get("display_name") or login,
        )


class TwitchChannelResolver:
    """
    Resolve a Twitch reference to its login (the identifier status
    queries use).

    If the users endpoint is unavailable the parsed login is accepted as-is,
    so registration keeps working during a Twitch API outage.
    """

    def __init__(self, api: TwitchHelixAPI):
        self._api = api

    async def resolve(self, raw: str) -> Optional[ResolvedIdentity]:
        login = parse_twitch_login(raw)
        try:
            return await self._api.get_channel_info(login)
        except ProviderError as e:
            log.warning(f"[Twitch] Channel lookup for {login!r} failed, using parsed login: {e}")
            return ResolvedIdentity(channel_id=login, channel_name=login)
