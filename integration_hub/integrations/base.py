"""Base handler class and utilities."""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
import logging
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import httpx

from integration_hub.core.config import get_settings
from integration_hub.schemas import HandlerResult, SyncOptions


logger = logging.getLogger(__name__)

USER_AGENT = "IntegrationHub/1.0"


class IntegrationError(Exception):
    """Base integration error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(IntegrationError):
    """Authentication failed."""
    pass


class RateLimitError(IntegrationError):
    """Rate limit exceeded."""
    pass


class NotFoundError(IntegrationError):
    """Remote resource does not exist."""
    pass


class IntegrationTimeoutError(IntegrationError):
    """Provider did not answer in time."""
    pass


class ProviderUnreachableError(IntegrationError):
    """Provider host could not be reached."""
    pass


def truncate(text: Optional[str], max_length: int) -> str:
    """Truncate text to max length with an ellipsis."""
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


class BaseHandler(ABC):
    """Base class for all provider handlers.

    One instance serves every integration of its type, so handlers must not
    keep per-tenant state. Tenant config arrives as call arguments.

    ``test_connection`` is mandatory. ``sync`` and ``handle_event`` are
    optional capabilities: check ``supports_sync`` / ``supports_events``
    before calling them.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout or get_settings().http_timeout_seconds

    @property
    def supports_sync(self) -> bool:
        return type(self).sync is not BaseHandler.sync

    @property
    def supports_events(self) -> bool:
        return type(self).handle_event is not BaseHandler.handle_event

    # Capabilities

    @abstractmethod
    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        """Read-only live check. Expected failures return success=False."""
        pass

    async def sync(self, config: Dict[str, Any], options: SyncOptions, user_id: str) -> HandlerResult:
        """Exchange data with the provider."""
        raise NotImplementedError("This integration does not support sync")

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        """Deliver a platform event. Raises on delivery failure."""
        raise NotImplementedError("This integration does not support events")

    # Common utility methods

    async def make_api_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        timeout: Optional[float] = None,
        raise_for_status: bool = True,
    ) -> httpx.Response:
        """Make an API request and map HTTP failures to integration errors."""
        request_headers = {"User-Agent": USER_AGENT}
        request_headers.update(headers or {})

        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=request_headers,
                    params=params,
                    json=json,
                )
            if raise_for_status:
                response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 429:
                raise RateLimitError(f"Rate limit exceeded: {e}", status_code)
            elif status_code in (401, 403):
                raise AuthenticationError(f"Authentication failed: {e}", status_code)
            elif status_code == 404:
                raise NotFoundError(f"Resource not found: {e}", status_code)
            else:
                raise IntegrationError(f"API request failed: {e}", status_code)
        except httpx.TimeoutException as e:
            raise IntegrationTimeoutError(f"Request timed out: {e}")
        except httpx.ConnectError as e:
            raise ProviderUnreachableError(f"Connection failed: {e}")
        except httpx.HTTPError as e:
            logger.error(f"API request failed: {e}")
            raise IntegrationError(f"API request failed: {str(e)}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(IntegrationTimeoutError),
        reraise=True,
    )
    async def fetch_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """GET a JSON document, retrying timeouts. Only for read-only calls."""
        response = await self.make_api_request("GET", url, headers=headers, params=params)
        return response.json()


def normalize_phone(phone: Any, country_code: Optional[str] = None) -> Optional[str]:
    """Reduce a phone number to digits; None when too short to be valid."""
    if not phone:
        return None
    cleaned = "".join(ch for ch in str(phone) if ch.isdigit())
    if country_code and cleaned.startswith("0"):
        cleaned = country_code + cleaned[1:]
    return cleaned if len(cleaned) >= 10 else None
