"""Market data provider layer -- Binance and OKX REST clients plus a ccxt adapter."""

from perpwatch.config import ProviderSettings
from perpwatch.providers.base import MarketDataProvider
from perpwatch.providers.binance import BinanceProvider
from perpwatch.providers.ccxt_provider import CcxtProvider
from perpwatch.providers.okx import OkxProvider
from perpwatch.providers.signing import (
    BinanceSigner,
    NullSigner,
    OkxSigner,
    RequestSigner,
)


def build_provider(settings: ProviderSettings) -> MarketDataProvider:
    """Create the configured provider with its signing capability injected."""
    api_key = settings.api_key.get_secret_value()
    api_secret = settings.api_secret.get_secret_value()

    if settings.name == "ccxt":
        return CcxtProvider(settings)

    if settings.name == "okx":
        signer: RequestSigner = NullSigner()
        if api_key and api_secret:
            signer = OkxSigner(api_key, api_secret, settings.passphrase.get_secret_value())
        return OkxProvider(
            base_url=settings.base_url,
            signer=signer,
            timeout=settings.request_timeout,
        )

    signer = BinanceSigner(api_key, api_secret) if api_key else NullSigner()
    return BinanceProvider(
        base_url=settings.base_url,
        signer=signer,
        timeout=settings.request_timeout,
    )


__all__ = [
    "BinanceProvider",
    "BinanceSigner",
    "CcxtProvider",
    "MarketDataProvider",
    "NullSigner",
    "OkxProvider",
    "OkxSigner",
    "RequestSigner",
    "build_provider",
]
