"""Network reachability check for the weather provider's site."""
import asyncio
import logging

import requests


class ConnectivityChecker:
    """Checks whether a provider host answers at all."""

    def __init__(self, timeout: int = 5):
        self.timeout = timeout

    def _head(self, url: str) -> int:
        response = requests.head(url, timeout=self.timeout, allow_redirects=True)
        return response.status_code

    async def can_reach(self, url: str) -> bool:
        """
        True if `url` answered with any HTTP status.

        Any HTTP answer counts as reachable; only transport errors mean
        the network is down.
        """
        try:
            status = await asyncio.to_thread(self._head, url)
        except requests.exceptions.RequestException as e:
            logging.warning(f"Can not connect to {url}: {e}")
            return False
        logging.debug(f"Reachability check {url}: HTTP {status}")
        return True
