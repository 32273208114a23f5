"""Injectable request signing capabilities for REST providers.

Providers build a ``SignableRequest`` for every call and ask their signer
for extra headers (and, for query-signed APIs, extra query parameters).
The pipeline core never sees credentials.
"""

import base64
import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urlencode


@dataclass
class SignableRequest:
    """The parts of an outgoing request a signer may read or extend."""

    method: str
    path: str
    params: dict[str, str] = field(default_factory=dict)
    body: str = ""
    signed: bool = False  # endpoint requires authentication

    @property
    def query(self) -> str:
        return urlencode(self.params)

    @property
    def request_path(self) -> str:
        """Path plus query string, as used by OKX prehash strings."""
        return f"{self.path}?{self.query}" if self.params else self.path


class RequestSigner(ABC):
    """Produces authentication headers for a request."""

    @abstractmethod
    def sign(self, request: SignableRequest) -> dict[str, str]:
        """Return headers to attach. May add entries to ``request.params``."""
        ...


class NullSigner(RequestSigner):
    """Signer for public endpoints: adds nothing."""

    def sign(self, request: SignableRequest) -> dict[str, str]:
        return {}


def _okx_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OkxSigner(RequestSigner):
    """OKX v5 signing: HMAC-SHA256 over timestamp + method + path + body, base64.

    Every request is signed, matching the OKX API key permission model
    where public endpoints accept (and ignore) the auth headers.
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        passphrase: str,
        clock: Callable[[], str] = _okx_timestamp,
    ) -> None:
        self._api_key = api_key
        self._secret_key = secret_key
        self._passphrase = passphrase
        self._clock = clock

    def signature(self, timestamp: str, request: SignableRequest) -> str:
        prehash = f"{timestamp}{request.method.upper()}{request.request_path}{request.body}"
        digest = hmac.new(
            self._secret_key.encode(), prehash.encode(), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode()

    def sign(self, request: SignableRequest) -> dict[str, str]:
        timestamp = self._clock()
        return {
            "OK-ACCESS-KEY": self._api_key,
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-SIGN": self.signature(timestamp, request),
            "OK-ACCESS-PASSPHRASE": self._passphrase,
        }


class BinanceSigner(RequestSigner):
    """Binance futures signing for USER_DATA endpoints.

    Public market data endpoints only get the API key header. Signed
    endpoints additionally get ``timestamp`` and an HMAC-SHA256 hex
    ``signature`` over the encoded query string.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        clock: Callable[[], int] = lambda: int(time.time() * 1000),
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._clock = clock

    def sign(self, request: SignableRequest) -> dict[str, str]:
        headers = {"X-MBX-APIKEY": self._api_key} if self._api_key else {}
        if request.signed:
            request.params["timestamp"] = str(self._clock())
            request.params["signature"] = hmac.new(
                self._api_secret.encode(), request.query.encode(), hashlib.sha256
            ).hexdigest()
        return headers
