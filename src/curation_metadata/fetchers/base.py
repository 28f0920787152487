"""Shared HTTP plumbing for the remote-source clients."""

import logging
from typing import Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from curation_metadata.exceptions import TransportError
from curation_metadata.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class BaseClient:
    """Rate-limited, retrying GET against one remote host.

    Connection errors, timeouts and HTTP 429 are retried; anything else that
    goes wrong surfaces as :class:`TransportError`.
    """

    def __init__(
        self,
        session: requests.Session,
        rate_limiter: RateLimiter,
        api_key: Optional[str] = None,
    ):
        self._session = session
        self._limiter = rate_limiter
        self._api_key = api_key

    def _http_get(
        self,
        url: str,
        params: Optional[dict] = None,
        timeout: int = DEFAULT_TIMEOUT,
        send_api_key: bool = True,
    ) -> requests.Response:
        """GET ``url``; the API key is only attached for E-utilities calls."""
        params = dict(params or {})
        logger.debug("GET %s %s", url, params)
        if send_api_key and self._api_key:
            params["api_key"] = self._api_key
        try:
            return self._http_get_with_retry(url, params, timeout)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise TransportError(f"HTTP {status} from {url}", status_code=status) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _http_get_with_retry(self, url: str, params: dict, timeout: int) -> requests.Response:
        self._limiter.acquire()
        resp = self._session.get(url, params=params, timeout=timeout)
        if resp.status_code == 429:
            raise requests.ConnectionError("Rate limited (429)")
        resp.raise_for_status()
        return resp
