"""
Manages the pool of user auth tokens, selecting one with an active
lossless streaming subscription and routing around tokens that stop working.
"""

import asyncio
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

import aiohttp

from qobuz_server.exceptions import NoValidCredentialError, QobuzServerError
from qobuz_server.utils.formatting import mask_token

if TYPE_CHECKING:
    from .client import QobuzCatalogClient

log = logging.getLogger(__name__)

DEFAULT_VALIDATION_WINDOW = 120.0  # 2 minutes


class CredentialPool:
    """
    Caches the currently trusted token and re-scans the pool when it goes stale.

    The pool itself is static configuration. Only the cached token and the
    time it was validated change at runtime.
    """

    def __init__(
        self,
        api_client: "QobuzCatalogClient",
        tokens: list[str],
        validation_window: float = DEFAULT_VALIDATION_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initializes the credential pool.

        Args:
            api_client: The catalog client used to run the 'user/get' probe.
            tokens: Ordered pool of user auth tokens.
            validation_window: Seconds a validated token is trusted without
                being probed again.
            clock: Monotonic time source.
        """
        self._api_client = api_client
        self._tokens: tuple[str, ...] = tuple(tokens)
        self.validation_window = validation_window
        self._clock = clock

        self._trusted_token: Optional[str] = None
        self._validated_at: float = 0.0
        self._cache_lock = threading.Lock()
        self._scan_lock = asyncio.Lock()

    @property
    def tokens(self) -> tuple[str, ...]:
        return self._tokens

    def _cached_token(self) -> Optional[str]:
        """Returns the trusted token if it is still within the validation window."""
        with self._cache_lock:
            if (
                self._trusted_token
                and self._clock() - self._validated_at < self.validation_window
            ):
                return self._trusted_token
            return None

    def invalidate(self) -> None:
        """
        Forgets the trusted token so the next request re-scans the pool.
        """
        with self._cache_lock:
            if self._trusted_token:
                log.warning(
                    f"[yellow]Invalidating cached token "
                    f"{mask_token(self._trusted_token)} after an API error.[/yellow]"
                )
            self._trusted_token = None
            self._validated_at = 0.0

    async def get_valid_credential(self) -> str:
        """
        Returns a token with an active streaming subscription.

        Raises:
            NoValidCredentialError: If no token in the pool passes validation.
        """
        if token := self._cached_token():
            return token

        async with self._scan_lock:
            # Another caller may have finished a scan while we waited.
            if token := self._cached_token():
                return token

            if not self._tokens:
                raise NoValidCredentialError(
                    "The token pool is empty. Provide at least one valid token."
                )

            log.info("No fresh cached token. Searching the pool for a working one...")
            for token in self._tokens:
                if await self._test_token(token):
                    with self._cache_lock:
                        self._trusted_token = token
                        self._validated_at = self._clock()
                    log.info(f"Found a working token: {mask_token(token)}")
                    return token
                log.warning(
                    f"[yellow]Token {mask_token(token)} is invalid or unsubscribed. "
                    "Trying next one...[/yellow]"
                )

            with self._cache_lock:
                self._trusted_token = None
                self._validated_at = 0.0

        raise NoValidCredentialError(
            "No valid, subscribed tokens were found in the configured pool."
        )

    async def probe_all(self) -> list[tuple[str, bool]]:
        """Probes every token in the pool without touching the cache."""
        results = []
        for token in self._tokens:
            results.append((mask_token(token), await self._test_token(token)))
        return results

    async def _test_token(self, token: str) -> bool:
        """
        Tests whether a token belongs to an account that can stream lossless audio.

        Args:
            token: The user auth token to test.

        Returns:
            True if the token is valid and subscribed, False otherwise.
        """
        if not token:
            return False
        try:
            user_info = await self._api_client.probe_token(token)
        except (aiohttp.ClientError, asyncio.TimeoutError, QobuzServerError) as e:
            log.debug(f"Token {mask_token(token)} failed validation: {e}")
            return False
        except ValueError as e:
            log.debug(f"Token {mask_token(token)} returned a malformed response: {e}")
            return False

        parameters = (user_info.get("credential") or {}).get("parameters") or {}
        if parameters.get("lossless_streaming") is True:
            log.debug(
                f"Token {mask_token(token)} validated for user: "
                f"{user_info.get('login', 'Unknown User')}"
            )
            return True

        log.debug(
            f"Token {mask_token(token)} is valid but has no active streaming "
            f"subscription (user: {user_info.get('login', 'Unknown User')})."
        )
        return False
