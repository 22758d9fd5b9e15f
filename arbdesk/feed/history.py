import asyncio
import logging
from typing import Optional

import aiohttp

from arbdesk.errors import TransportError
from arbdesk.feed.messages import parse_history
from arbdesk.marketdata.tick import PriceTick


log = logging.getLogger(__name__)


__all__ = ["HistoryClient"]


class HistoryClient:
    """
    Client for the historical-data endpoint.

    ``GET {base_url}?pair=SOL/USDT&source=Binance`` returns
    ``[{"timestamp": ISO-8601, "price": number}]`` ordered oldest first.

    A shared ``aiohttp.ClientSession`` may be supplied; otherwise a session is
    opened per request.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, pair: str, source: str) -> list[PriceTick]:
        """
        Fetch recent history for one exchange.

        Args:
            pair: Pair identifier (e.g. "SOL/USDT")
            source: Exchange identifier

        Returns:
            Ticks ordered oldest to newest

        Raises:
            TransportError: on HTTP or network failure
            ClassificationError: if the response body has the wrong shape
        """
        if self._session is not None:
            payload = await self._get(self._session, pair, source)
        else:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                payload = await self._get(session, pair, source)

        ticks = parse_history(payload, source=source, pair=pair)
        log.debug("Fetched %d historical prices for %s %s", len(ticks), source, pair)
        return ticks

    async def _get(self, session: aiohttp.ClientSession, pair: str, source: str):
        params = {"pair": pair, "source": source}
        try:
            async with session.get(self.base_url, params=params, timeout=self._timeout) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"History request for {source} {pair} failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"History response for {source} {pair} is not JSON: {exc}") from exc
