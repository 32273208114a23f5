"""Shared aiohttp plumbing for REST market data providers."""

from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

from perpwatch.exceptions import ProviderError
from perpwatch.logging import get_logger
from perpwatch.providers.base import MarketDataProvider
from perpwatch.providers.signing import NullSigner, RequestSigner, SignableRequest

logger = get_logger(__name__)


def to_decimal(raw: Any, field_name: str = "value") -> Decimal:
    """Convert a provider number (usually a string) to Decimal.

    Raises:
        ProviderError: If the value is missing or not numeric.
    """
    if raw is None or raw == "":
        raise ProviderError(f"Missing {field_name} in provider payload")
    try:
        return Decimal(str(raw))
    except InvalidOperation as e:
        raise ProviderError(f"Invalid {field_name}: {raw!r}") from e


class RestProvider(MarketDataProvider):
    """Base class for providers talking to a JSON REST API via aiohttp.

    Owns one ClientSession with a total per-request timeout. Every request
    goes through the injected RequestSigner before it is sent.

    Args:
        base_url: API root; None uses the subclass default.
        signer: Authentication capability; defaults to NullSigner.
        timeout: Per-request timeout in seconds.
        session: Optional externally managed session (tests, shared pools).
    """

    default_base_url: str = ""

    def __init__(
        self,
        base_url: str | None = None,
        signer: RequestSigner | None = None,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._signer = signer or NullSigner()
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._owns_session = True
        logger.info("provider_connected", provider=self.name, base_url=self._base_url)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        logger.info("provider_closed", provider=self.name)

    async def _get(
        self, path: str, params: dict[str, Any] | None = None, signed: bool = False
    ) -> Any:
        """Issue a signed GET and return the decoded JSON body.

        The query string is built before signing so that the signed string
        and the transmitted URL are byte-identical.

        Raises:
            ProviderError: On non-200 responses or transport errors.
        """
        if self._session is None:
            await self.connect()
        if self._session is None:
            raise ProviderError(f"No open HTTP session for {self.name}")

        request = SignableRequest(
            method="GET",
            path=path,
            params={k: str(v) for k, v in (params or {}).items()},
            signed=signed,
        )
        headers = self._signer.sign(request)
        url = f"{self._base_url}{request.request_path}"

        try:
            async with self._session.get(url, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise ProviderError(
                        f"GET {path} returned {resp.status}: {body[:200]}"
                    )
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ProviderError(f"GET {path} failed: {e}") from e
