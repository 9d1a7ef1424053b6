"""
HTTP fetcher for feed documents.

One GET per call with a bounded timeout. There are no retries here; a source
that fails is simply tried again on the next import pass.
"""

from typing import Optional

import httpx

from .. import __version__
from ..errors import FetchError
from ..logging_conf import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = f"rustnews/{__version__}"


class Fetcher:
    """
    Retrieves raw feed documents over HTTP.

    A fresh AsyncClient is used unless one is injected, in which case the
    caller owns its lifecycle.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize fetcher.

        Args:
            timeout: Deadline for the whole request (seconds)
            user_agent: User-Agent header to send
            client: Optional shared client
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    async def fetch(self, url: str) -> str:
        """
        GET a feed document and return its body as text.

        Raises:
            FetchError: On timeout, transport failure or a non-2xx status
        """
        logger.debug("fetching_feed", url=url)

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/atom+xml, application/rss+xml, application/xml;q=0.9, */*;q=0.8",
        }

        try:
            if self._client is not None:
                response = await self._client.get(
                    url, headers=headers, timeout=self.timeout, follow_redirects=True
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise FetchError(url, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise FetchError(
                url,
                response.reason_phrase or "unexpected status",
                status_code=response.status_code,
            )

        logger.debug(
            "feed_fetched",
            url=url,
            status=response.status_code,
            bytes=len(response.content),
        )
        return response.text
