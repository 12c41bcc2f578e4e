"""CLI entry point for the telemetry engine."""

from __future__ import annotations

import argparse
import logging
import signal
import threading

from common.config import get_settings
from telemetry_engine.bootstrap import build_service

logger = logging.getLogger(__name__)


def _run_once(service) -> None:
    service.start()
    try:
        # Como primaria, start() deja el primer ciclo vencido y tick() lo ejecuta
        service.tick()
        if not service.is_primary:
            logger.info("Instance is follower, lease held by %s", service.status()["lease_owner"])
        logger.info("Fleet stats: %s", service.engine.get_fleet_stats().to_dict())
    finally:
        service.stop()


def _serve(service, host: str, port: int, tick_interval: float) -> None:
    import uvicorn

    from telemetry_engine.main import create_app

    stop_event = threading.Event()
    loop = threading.Thread(
        target=service.run_forever,
        kwargs={"stop_event": stop_event, "tick_interval": tick_interval},
        name="telemetry-loop",
        daemon=True,
    )
    loop.start()
    try:
        uvicorn.run(create_app(service), host=host, port=port, log_level="info")
    finally:
        stop_event.set()
        loop.join(timeout=5.0)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Smoke sensor telemetry engine (ingest + aggregation)")
    p.add_argument("--once", action="store_true", help="run a single tick and exit")
    p.add_argument("--serve", action="store_true", help="expose the read API while the loop runs")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8010)
    p.add_argument("--tick-interval", type=float, default=0.5)
    p.add_argument("--debug", action="store_true")
    args = p.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = get_settings()
    service = build_service(settings)
    logger.info("Telemetry engine started")
    logger.info(
        "Config: instance=%s store=%s polling=%.1fs lease_timeout=%.1fs",
        settings.instance_id,
        settings.store_backend,
        settings.polling_interval_seconds,
        settings.lease_timeout_seconds,
    )

    if args.once:
        _run_once(service)
        return

    if args.serve:
        _serve(service, args.host, args.port, args.tick_interval)
        return

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
    try:
        service.run_forever(stop_event, tick_interval=args.tick_interval)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        stop_event.set()


if __name__ == "__main__":
    main()
