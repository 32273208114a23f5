"""Entry point for the perpwatch telemetry and alerting service.

Wires all components together and starts the orchestrator. Handles
SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. MarketDataProvider (Binance, OKX or ccxt, with its request signer)
4. InstrumentCatalog (inventory and 24h volumes)
5. VolumeRanker (liquidity filter and ordering)
6. MetricFetcher (per-instrument retrievals with deadlines)
7. BatchScheduler (bounded concurrency with inter-batch delay)
8. NotificationChannel + NotificationDispatcher (Telegram or log)
9. ReportProfiles (trend, structure)
10. ReportCycle (the pipeline)
11. Orchestrator (triggers, mutual exclusion, cycle deadline)

Usage:
    perpwatch                     # startup run, then scheduled forever
    perpwatch --once              # every enabled profile once, then exit
    perpwatch --once structure    # one profile once, then exit
"""

import argparse
import asyncio
import signal
from typing import Any
from zoneinfo import ZoneInfo

from perpwatch.config import AppSettings
from perpwatch.logging import get_logger, setup_logging
from perpwatch.market import InstrumentCatalog, MetricFetcher, VolumeRanker
from perpwatch.notify import NotificationDispatcher, build_channel
from perpwatch.orchestrator import Orchestrator, Schedule
from perpwatch.pipeline import BatchScheduler, ReportCycle
from perpwatch.profiles import build_profiles
from perpwatch.providers import build_provider
from perpwatch.trigger import DailyTrigger


def _build_schedules(settings: AppSettings, profiles: dict[str, Any]) -> list[Schedule]:
    """Bind each enabled profile to its daily trigger."""
    sched = settings.schedule
    schedules = []
    if sched.trend_enabled:
        schedules.append(
            Schedule(profiles["trend"], DailyTrigger.parse(sched.trend_times, sched.timezone))
        )
    if sched.structure_enabled:
        schedules.append(
            Schedule(
                profiles["structure"],
                DailyTrigger.parse(sched.structure_times, sched.timezone),
            )
        )
    return schedules


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT call provider.connect() -- that happens in run().

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("perpwatch.main")

    # 3. Provider with injected signing
    provider = build_provider(settings.provider)

    # 4-7. Universe and retrieval
    catalog = InstrumentCatalog(provider)
    ranker = VolumeRanker(
        min_volume_24h=settings.scan.min_volume_24h,
        exclude_substrings=settings.scan.exclude_substrings,
    )
    fetcher = MetricFetcher(
        provider,
        timeout=settings.provider.request_timeout,
        long_short_period=settings.scan.long_short_period,
    )
    scheduler = BatchScheduler(
        batch_size=settings.scan.batch_size,
        batch_delay=settings.scan.batch_delay,
    )

    # 8. Notifications
    if not settings.notifier.enabled:
        logger.warning(
            "telegram_not_configured",
            note="Alerts will be written to the log only.",
        )
    channel = build_channel(settings.notifier)
    dispatcher = NotificationDispatcher(
        channel,
        max_length=settings.notifier.max_length,
        chunk_size=settings.notifier.chunk_size,
        chunk_delay=settings.notifier.chunk_delay,
    )

    # 9. Profiles
    profiles = build_profiles(settings.rules)

    # 10. Pipeline
    cycle = ReportCycle(
        provider_name=provider.name,
        catalog=catalog,
        ranker=ranker,
        fetcher=fetcher,
        scheduler=scheduler,
        dispatcher=dispatcher,
        ema_period=settings.rules.ema_period,
        atr_period=settings.rules.atr_period,
        tz=ZoneInfo(settings.schedule.timezone),
    )

    # 11. Orchestrator
    orchestrator = Orchestrator(
        cycle=cycle,
        dispatcher=dispatcher,
        schedules=_build_schedules(settings, profiles),
        provider_name=provider.name,
        cycle_timeout=settings.scan.cycle_timeout,
    )

    return {
        "provider": provider,
        "catalog": catalog,
        "ranker": ranker,
        "fetcher": fetcher,
        "scheduler": scheduler,
        "channel": channel,
        "dispatcher": dispatcher,
        "profiles": profiles,
        "cycle": cycle,
        "orchestrator": orchestrator,
    }


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """Register SIGINT/SIGTERM to stop the orchestrator gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("perpwatch.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        orchestrator.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="perpwatch",
        description="Perpetual futures market telemetry and anomaly alerts.",
    )
    parser.add_argument(
        "--once",
        nargs="?",
        const="all",
        default=None,
        metavar="PROFILE",
        help="run enabled profiles (or just PROFILE) once and exit",
    )
    return parser.parse_args(argv)


async def run(argv: list[str] | None = None) -> None:
    """Run the service.

    Without ``--once``: one startup cycle per enabled profile (when
    SCHEDULE_RUN_ON_START is true), then every profile on its schedule
    until a shutdown signal arrives.
    """
    args = _parse_args(argv)

    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("perpwatch.main")

    # 3-11. Build all components
    components = _build_components(settings)
    orchestrator: Orchestrator = components["orchestrator"]
    profiles = components["profiles"]

    logger.info(
        "perpwatch_starting",
        provider=components["provider"].name,
        schedules=[s.profile.name for s in orchestrator.schedules],
        min_volume_24h=str(settings.scan.min_volume_24h),
        batch_size=settings.scan.batch_size,
    )

    try:
        await components["provider"].connect()

        if args.once is not None:
            if args.once == "all":
                await orchestrator.run_startup()
            elif args.once in profiles:
                await orchestrator.run_once(profiles[args.once])
            else:
                logger.error(
                    "unknown_profile",
                    profile=args.once,
                    available=sorted(profiles),
                )
            return

        _setup_signal_handlers(orchestrator)
        if settings.schedule.run_on_start:
            await orchestrator.run_startup()
        await orchestrator.run_forever()
    finally:
        await components["provider"].close()
        await components["channel"].close()
        logger.info("perpwatch_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
