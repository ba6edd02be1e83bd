"""
Async client for the Qobuz catalog API with signed file-URL requests and
token rotation on entitlement failures.
"""

import hashlib
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from qobuz_server.exceptions import (
    CatalogError,
    EntitlementExhaustedError,
    InvalidAppSecretError,
    InvalidQualityError,
    NotStreamableError,
    TransientAuthError,
)
from qobuz_server.models.catalog import Album, Track, parse_album
from qobuz_server.models.config import (
    DEFAULT_API_BASE,
    FORMAT_CD,
    FORMAT_HIRES,
    FORMAT_HIRES_PLUS,
    FORMAT_MP3,
    QUALITY_MAP,
)

from .credentials import DEFAULT_VALIDATION_WINDOW, CredentialPool

log = logging.getLogger(__name__)

# Length in seconds of the clip served to accounts without a streaming plan
PREVIEW_DURATION = 30


def select_format(track: Track) -> int:
    """
    Picks the highest format ID the track's source material actually supports.
    """
    bit_depth = track.maximum_bit_depth
    sampling_rate = track.maximum_sampling_rate or 0
    if bit_depth == 24 and sampling_rate > 96:
        return FORMAT_HIRES_PLUS
    if bit_depth == 24:
        return FORMAT_HIRES
    if bit_depth == 16:
        return FORMAT_CD
    return FORMAT_MP3


def is_preview(
    file_url_data: Dict[str, Any], track_duration: Optional[int] = None
) -> bool:
    """
    Detects a file-URL response that points at a preview clip.

    An explicit `sample` flag wins. Without one, a 30 second response is a
    preview unless the track itself is 30 seconds long.
    """
    sample = file_url_data.get("sample")
    if sample is not None:
        return sample is True
    if track_duration == PREVIEW_DURATION:
        return False
    return file_url_data.get("duration") == PREVIEW_DURATION


class QobuzCatalogClient:
    """
    Async client for the Qobuz JSON API (v0.2).

    Every request carries the app ID and a token drawn from the credential
    pool. Only `resolve_media_location` rotates tokens on failure; browse
    calls pass errors straight through.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        tokens: list[str],
        api_base: str = DEFAULT_API_BASE,
        validation_window: float = DEFAULT_VALIDATION_WINDOW,
        probe_timeout: float = 5.0,
    ):
        """
        Initializes the API client.

        Args:
            app_id: Qobuz application ID sent with every request.
            app_secret: Secret used to sign 'track/getFileUrl' requests.
            tokens: Ordered pool of user auth tokens.
            api_base: Base URL of the JSON API, ending with a slash.
            validation_window: Seconds a validated token is reused unprobed.
            probe_timeout: Timeout in seconds for a single token probe.
        """
        self.app_id: str = str(app_id)
        self.app_secret: str = app_secret
        self.api_base: str = api_base
        self.probe_timeout = probe_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._credentials = CredentialPool(self, tokens, validation_window)

    @property
    def credentials(self) -> CredentialPool:
        """Provides access to the credential pool."""
        return self._credentials

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=8,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={
                    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
                    "X-App-Id": self.app_id,
                    "Accept-Encoding": "gzip, deflate",
                },
                timeout=aiohttp.ClientTimeout(total=60, connect=15, sock_read=30),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _prepare_get_file_url_params(
        self, track_id: str, format_id: int
    ) -> Dict[str, Any]:
        """
        Builds the signed parameter dictionary for the 'track/getFileUrl' endpoint.
        """
        if format_id not in QUALITY_MAP:
            raise InvalidQualityError(
                f"Invalid format_id: {format_id}. Must be one of 5, 6, 7, or 27."
            )
        if not self.app_secret:
            raise InvalidAppSecretError(
                "App secret has not been configured. Cannot sign request."
            )

        unix_ts = int(time.time())
        sig_str = (
            f"trackgetFileUrlformat_id{format_id}intentstreamtrack_id{track_id}"
            f"{unix_ts}{self.app_secret}"
        )
        request_sig = hashlib.md5(sig_str.encode("utf-8")).hexdigest()

        return {
            "format_id": format_id,
            "intent": "stream",
            "track_id": track_id,
            "request_ts": unix_ts,
            "request_sig": request_sig,
        }

    async def _request(
        self,
        endpoint: str,
        params: Dict[str, Any],
        token: str,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Sends one GET request and decodes the JSON body."""
        await self._initialize_session()
        request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

        async with self._session.get(
            self.api_base + endpoint,
            params=params,
            headers={"X-User-Auth-Token": token},
            timeout=request_timeout,
        ) as r:
            if r.status in (401, 403):
                raise TransientAuthError(
                    f"Request to '{endpoint}' was rejected with status {r.status}.",
                    status=r.status,
                )
            if endpoint == "track/getFileUrl" and r.status == 400:
                raise InvalidAppSecretError(
                    "The app secret is invalid or has expired."
                )
            r.raise_for_status()
            data = await r.json(content_type=None)

        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected response from '{endpoint}'.")
        return data

    async def api_call(
        self, endpoint: str, token: Optional[str] = None, **params: Any
    ) -> Dict[str, Any]:
        """
        Makes an authenticated API call with the trusted token (or `token`).
        """
        if token is None:
            token = await self._credentials.get_valid_credential()
        try:
            return await self._request(endpoint, params, token)
        except Exception as e:
            log.debug(f"API call to {endpoint} failed: {e}")
            raise

    async def probe_token(self, token: str) -> Dict[str, Any]:
        """Runs the lightweight 'user/get' call for a single token."""
        return await self._request("user/get", {}, token, timeout=self.probe_timeout)

    async def resolve_media_location(
        self, track_id: str, format_id: int, track_duration: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Resolves a short-lived download URL for a track.

        A preview response or an auth rejection invalidates the trusted token
        and the request is retried exactly once with a freshly selected one.
        `track_duration` keeps a genuine 30 second track from being mistaken
        for a preview.

        Raises:
            EntitlementExhaustedError: If the retry also yields a preview.
            TransientAuthError: If the retry is also rejected.
            NotStreamableError: If the response carries no URL.
        """
        for attempt in (1, 2):
            params = self._prepare_get_file_url_params(str(track_id), format_id)
            token = await self._credentials.get_valid_credential()
            try:
                data = await self.api_call("track/getFileUrl", token=token, **params)
            except TransientAuthError as e:
                self._credentials.invalidate()
                if attempt == 2:
                    raise TransientAuthError(
                        f"Track {track_id} was still rejected after rotating"
                        f" tokens: {e}",
                        status=e.status,
                    ) from e
                log.warning(
                    f"[yellow]Token rejected for track {track_id}; retrying with a"
                    " fresh token.[/yellow]"
                )
                continue

            if is_preview(data, track_duration):
                self._credentials.invalidate()
                if attempt == 2:
                    raise EntitlementExhaustedError(
                        f"Track {track_id} only resolved to a preview clip, even"
                        " after rotating tokens."
                    )
                log.warning(
                    f"[yellow]Got a preview stream for track {track_id}; retrying"
                    " with a fresh token.[/yellow]"
                )
                continue

            if not data.get("url"):
                raise NotStreamableError(
                    f"No download URL was returned for track {track_id}."
                )
            return data

    # Pass-through browse calls
    async def fetch_album_metadata(self, album_id: str) -> Album:
        data = await self.api_call("album/get", album_id=album_id, extra="track_ids")
        return parse_album(data)

    async def fetch_artist_releases(
        self,
        artist_id: str,
        release_type: str = "album",
        limit: int = 10,
        offset: int = 0,
        track_size: int = 1000,
    ) -> Dict[str, Any]:
        return await self.api_call(
            "artist/getReleasesList",
            artist_id=artist_id,
            release_type=release_type,
            limit=limit,
            offset=offset,
            track_size=track_size,
            sort="release_date",
        )

    async def fetch_artist_page(self, artist_id: str) -> Dict[str, Any]:
        return await self.api_call(
            "artist/page", artist_id=artist_id, sort="release_date"
        )

    async def search(
        self, query: str, limit: int = 10, offset: int = 0
    ) -> Dict[str, Any]:
        return await self.api_call(
            "catalog/search", query=query, limit=limit, offset=offset
        )
