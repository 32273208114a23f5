"""Volume ranker -- liquidity filter and descending volume order."""

from collections.abc import Iterable
from decimal import Decimal

from perpwatch.logging import get_logger
from perpwatch.models import Instrument, VolumeSample

logger = get_logger(__name__)


class VolumeRanker:
    """Attaches 24h volume to instruments, filters and sorts them.

    Keeps instruments whose volume is strictly greater than
    ``min_volume_24h`` and whose symbol contains none of the excluded
    substrings. Sorting is stable, so equal volumes keep catalog order.

    Args:
        min_volume_24h: Exclusive lower bound on 24h quote volume.
        exclude_substrings: Symbol fragments to drop (e.g. "USDC").
    """

    def __init__(
        self,
        min_volume_24h: Decimal = Decimal("100000000"),
        exclude_substrings: Iterable[str] = ("USDC",),
    ) -> None:
        self._min_volume = min_volume_24h
        self._exclude = tuple(s for s in exclude_substrings if s)

    def is_excluded(self, symbol: str) -> bool:
        return any(fragment in symbol for fragment in self._exclude)

    def rank(
        self, instruments: list[Instrument], volumes: dict[str, Decimal]
    ) -> list[VolumeSample]:
        """Return qualifying instruments as VolumeSamples, highest volume first.

        Instruments missing from ``volumes`` count as zero volume.
        """
        samples = [
            VolumeSample(instrument=inst, volume_24h=volumes.get(inst.symbol, Decimal("0")))
            for inst in instruments
        ]
        kept = [
            s
            for s in samples
            if s.volume_24h > self._min_volume and not self.is_excluded(s.symbol)
        ]
        kept.sort(key=lambda s: s.volume_24h, reverse=True)

        logger.info(
            "instruments_ranked",
            candidates=len(instruments),
            kept=len(kept),
            min_volume=str(self._min_volume),
        )
        return kept
