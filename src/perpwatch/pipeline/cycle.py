"""One report cycle: catalog -> rank -> batched fetch/compute/classify -> aggregate -> dispatch.

Each cycle gets its own CycleContext. Per-instrument units run inside the
BatchScheduler and write only their own InstrumentReport; alerts are moved
into the context's category collections after every batch has joined, in
rank order.
"""

from __future__ import annotations

import uuid
from datetime import timezone, tzinfo

from perpwatch.alerts.aggregator import AlertAggregator
from perpwatch.alerts.classifier import AnomalyClassifier
from perpwatch.alerts.formatting import (
    STRUCTURE_HEADER,
    TREND_HEADER,
    format_structure_row,
    format_trend_row,
)
from perpwatch.exceptions import InsufficientDataError
from perpwatch.indicators import (
    build_indicator_snapshot,
    market_value,
    oi_to_volume_ratio,
)
from perpwatch.logging import get_logger
from perpwatch.market.catalog import InstrumentCatalog
from perpwatch.market.fetcher import MetricFetcher
from perpwatch.market.ranker import VolumeRanker
from perpwatch.models import (
    CycleContext,
    FundingInfo,
    InstrumentReport,
    MetricName,
    MetricResult,
    StructuralSnapshot,
    VolumeSample,
)
from perpwatch.notify.dispatcher import NotificationDispatcher
from perpwatch.pipeline.scheduler import BatchScheduler
from perpwatch.profiles import ReportProfile

logger = get_logger(__name__)


def new_cycle_id() -> str:
    return uuid.uuid4().hex[:8]


def assemble_report(
    sample: VolumeSample,
    results: dict[MetricName, MetricResult],
    profile: ReportProfile,
    ema_period: int = 120,
    atr_period: int = 14,
) -> InstrumentReport:
    """Turn raw retrieval results into computed metrics for one instrument.

    Missing retrievals leave the dependent fields None and are recorded in
    ``report.errors``; nothing here raises for bad or absent data.
    """
    structural = StructuralSnapshot(symbol=sample.symbol)
    report = InstrumentReport(sample=sample, structural=structural)

    for name, result in results.items():
        if result.missing:
            report.errors[name.value] = result.error or "no data"

    funding = results.get(MetricName.FUNDING)
    if funding is not None and not funding.missing:
        info: FundingInfo = funding.value
        structural.funding_rate = info.funding_rate
        structural.mark_price = info.mark_price
        structural.next_funding_time = info.next_funding_time

    open_interest = results.get(MetricName.OPEN_INTEREST)
    if open_interest is not None and not open_interest.missing:
        structural.open_interest = open_interest.value

    long_short = results.get(MetricName.LONG_SHORT_RATIO)
    if long_short is not None and not long_short.missing:
        structural.long_short_ratio = long_short.value

    if structural.open_interest is not None and structural.mark_price is not None:
        report.market_value = market_value(structural.open_interest, structural.mark_price)
        report.oi_to_volume_ratio = oi_to_volume_ratio(report.market_value, sample.volume_24h)

    candles = results.get(MetricName.CANDLES)
    if candles is not None and not candles.missing:
        try:
            report.indicators = build_indicator_snapshot(
                sample.symbol,
                candles.value,
                ema_period=ema_period,
                atr_period=atr_period,
                with_trend=profile.with_trend,
            )
        except InsufficientDataError as e:
            report.errors["indicators"] = str(e)
        else:
            if report.indicators.trend_error is not None:
                report.errors["trend"] = report.indicators.trend_error

    return report


class ReportCycle:
    """Runs report profiles end to end against one provider.

    Args:
        provider_name: Display name for alert headers.
        catalog: Instrument inventory and volume source.
        ranker: Liquidity filter and ordering.
        fetcher: Per-instrument metric retrieval.
        scheduler: Bounded-concurrency batch runner.
        dispatcher: Notification delivery.
        ema_period: Trend baseline EMA period.
        atr_period: ATR period.
        tz: Timezone for next-funding times in the log table.
    """

    def __init__(
        self,
        provider_name: str,
        catalog: InstrumentCatalog,
        ranker: VolumeRanker,
        fetcher: MetricFetcher,
        scheduler: BatchScheduler,
        dispatcher: NotificationDispatcher,
        ema_period: int = 120,
        atr_period: int = 14,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._provider_name = provider_name
        self._catalog = catalog
        self._ranker = ranker
        self._fetcher = fetcher
        self._scheduler = scheduler
        self._dispatcher = dispatcher
        self._ema_period = ema_period
        self._atr_period = atr_period
        self._tz = tz

    async def process(
        self,
        sample: VolumeSample,
        profile: ReportProfile,
        classifier: AnomalyClassifier,
    ) -> InstrumentReport:
        """Fetch, compute and classify one instrument (one scheduler unit)."""
        results = await self._fetcher.fetch(
            sample.symbol,
            profile.metrics,
            candle_interval=profile.candle_interval,
            candle_limit=profile.candle_limit,
        )
        report = assemble_report(
            sample, results, profile, self._ema_period, self._atr_period
        )
        if "trend" in report.errors:
            logger.info("trend_indicators_skipped", symbol=sample.symbol, reason=report.errors["trend"])
        report.alerts = classifier.classify(report)

        if profile.table == "trend":
            if report.indicators is not None:
                logger.info("market_row", row=format_trend_row(report))
        elif not {MetricName.FUNDING.value, MetricName.OPEN_INTEREST.value} & report.errors.keys():
            logger.info("market_row", row=format_structure_row(report, self._tz))
        return report

    async def run(self, profile: ReportProfile, cycle_id: str | None = None) -> CycleContext:
        """Execute one full cycle for ``profile`` and return its context."""
        context = CycleContext(
            profile=profile,
            provider_name=self._provider_name,
            cycle_id=cycle_id or new_cycle_id(),
        )
        logger.info("cycle_started", profile=profile.name, cycle_id=context.cycle_id)

        instruments = await self._catalog.fetch()
        if not instruments:
            logger.warning("cycle_skipped", profile=profile.name, reason="empty_catalog")
            return context

        volumes = await self._catalog.fetch_volumes(instruments)
        context.samples = self._ranker.rank(instruments, volumes)
        if not context.samples:
            logger.warning("cycle_skipped", profile=profile.name, reason="no_liquid_instruments")
            return context

        header = TREND_HEADER if profile.table == "trend" else STRUCTURE_HEADER
        logger.info("market_table", header=header)

        classifier = AnomalyClassifier(
            profile.rules,
            candle_interval=profile.candle_interval,
            ema_period=self._ema_period,
        )
        results = await self._scheduler.run(
            context.samples,
            lambda sample: self.process(sample, profile, classifier),
        )

        # barrier passed: every unit has finished
        context.reports = [r for r in results if r is not None]
        for report in context.reports:
            context.add_alerts(report.alerts)

        batches = AlertAggregator(profile.rules).aggregate(context)
        delivered = await self._dispatcher.send_batches(batches)

        logger.info(
            "cycle_complete",
            profile=profile.name,
            cycle_id=context.cycle_id,
            instruments=len(context.samples),
            reports=len(context.reports),
            failed_units=len(results) - len(context.reports),
            alerts=context.alert_count,
            messages=len(batches),
            delivered=delivered,
        )
        return context

