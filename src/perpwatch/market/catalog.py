"""Instrument catalog -- resolves the tradable perpetual universe each cycle.

The catalog is fetched fresh every cycle; nothing is cached between cycles
so listings and delistings are picked up on the next firing.
"""

from decimal import Decimal

from perpwatch.exceptions import CatalogError
from perpwatch.logging import get_logger
from perpwatch.models import Instrument
from perpwatch.providers.base import MarketDataProvider

logger = get_logger(__name__)


class InstrumentCatalog:
    """Loads active perpetual instruments and their 24h volumes.

    ``load``/``load_volumes`` are strict and raise CatalogError.
    ``fetch``/``fetch_volumes`` are the fail-soft variants used by the
    cycle: provider errors are logged and an empty result is returned,
    which short-circuits the rest of the cycle.
    """

    def __init__(self, provider: MarketDataProvider) -> None:
        self._provider = provider

    async def load(self) -> list[Instrument]:
        """Return active perpetual instruments in provider order.

        Raises:
            CatalogError: If the provider inventory cannot be retrieved.
        """
        try:
            instruments = await self._provider.fetch_instruments()
        except Exception as e:
            raise CatalogError(f"Instrument inventory unavailable: {e}") from e

        active = [i for i in instruments if i.is_active_perpetual]
        logger.info(
            "catalog_loaded",
            provider=self._provider.name,
            total=len(instruments),
            active_perpetual=len(active),
        )
        return active

    async def load_volumes(self, instruments: list[Instrument]) -> dict[str, Decimal]:
        """Return 24h quote volume keyed by symbol.

        Raises:
            CatalogError: If the ticker endpoint cannot be retrieved.
        """
        try:
            return await self._provider.fetch_volumes([i.symbol for i in instruments])
        except Exception as e:
            raise CatalogError(f"24h volumes unavailable: {e}") from e

    async def fetch(self) -> list[Instrument]:
        try:
            return await self.load()
        except CatalogError as e:
            logger.error("catalog_fetch_failed", provider=self._provider.name, error=str(e))
            return []

    async def fetch_volumes(self, instruments: list[Instrument]) -> dict[str, Decimal]:
        try:
            return await self.load_volumes(instruments)
        except CatalogError as e:
            logger.error("volume_fetch_failed", provider=self._provider.name, error=str(e))
            return {}
