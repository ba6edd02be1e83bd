"""
Handles the low-level downloading of audio payloads and cover art over HTTP.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

log = logging.getLogger(__name__)


class Downloader:
    """Fetches whole files into memory over a shared aiohttp session."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(self, max_connections: int = 4):
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the aiohttp session used for downloads."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                ttl_dns_cache=600,  # 10 minutes
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            log.debug(f"Created download session with limit={self.max_connections}")
            return self._session

    async def close(self) -> None:
        """Closes the download session."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
                self._session = None
                log.debug("Downloader session closed.")

    async def fetch_bytes(self, url: str) -> bytes:
        """
        Downloads a file fully into memory.

        Raises:
            aiohttp.ClientError: On connection failures or non-2xx responses.
            asyncio.TimeoutError: If the transfer stalls.
        """
        session = await self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            buffer = bytearray()
            async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                buffer.extend(chunk)
        log.debug(f"Downloaded {len(buffer)} bytes.")
        return bytes(buffer)

    async def fetch_asset(self, url: str) -> Optional[bytes]:
        """
        Downloads an asset (like a cover image), returning None if it fails.
        """
        try:
            return await self.fetch_bytes(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning(f"[yellow]Could not fetch asset from {url}: {e}[/yellow]")
            return None
