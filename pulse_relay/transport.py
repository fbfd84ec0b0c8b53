"""HTTP delivery of heart rate samples."""

import logging

import aiohttp

from .errors import DeliveryError
from .record import SampleRecord

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://applewatchtest.free.beeceptor.com"
DEFAULT_PATH = "/heartrate"
DEFAULT_TIMEOUT = 10.0

JSON_HEADERS = {"Content-Type": "application/json"}


def is_success(status: int) -> bool:
    """Return True for HTTP statuses in the inclusive 2xx range."""
    return 200 <= status <= 299


class HeartRateTransport:
    """Posts sample records to the collection endpoint, one attempt per sample."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        path: str = DEFAULT_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url
        self.path = path
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def url(self) -> str:
        return self.base_url.rstrip("/") + self.path

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _post(self, record: SampleRecord) -> int:
        """POST the record and return the response status.

        Raises:
            DeliveryError: On serialization, connection or timeout failure
        """
        try:
            body = record.to_json()
        except (TypeError, ValueError) as e:
            raise DeliveryError("Serialization failed", log_message=f"Cannot serialize sample: {e}") from e

        try:
            async with self._get_session().post(
                self.url,
                data=body,
                headers=JSON_HEADERS,
                timeout=self._timeout,
            ) as response:
                return response.status
        except TimeoutError as e:
            raise DeliveryError("Request timed out", log_message=f"Timeout posting to {self.url}") from e
        except aiohttp.ClientError as e:
            raise DeliveryError("Request failed", log_message=f"Error posting to {self.url}: {e}") from e

    async def deliver(self, record: SampleRecord) -> bool:
        """Deliver a record once. Returns True iff the endpoint answered 2xx."""
        try:
            status = await self._post(record)
        except DeliveryError as e:
            logger.warning("Delivery failed: %s", e)
            return False

        if not is_success(status):
            logger.warning("Delivery rejected with HTTP %d", status)
            return False

        logger.debug("Delivered %.0f bpm (HTTP %d)", record.heart_rate, status)
        return True

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
