"""
Process entry point for the fantasy anomaly monitor.

Builds exactly one AnomalyEngine, wires it to a JSON-file subject source and
the configured sinks, and runs the monitoring loop until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from dotenv import load_dotenv

from src.anomaly import AnomalyEngine
from src.core.config import config
from src.core.exceptions import AnomalyDetectionError
from src.core.logging_config import setup_logging
from src.data.providers import JSONSubjectSource

from backend.alerts import AlertEvent, AlertLifecycleManager, Correlator
from backend.monitor import MonitoringLoop, default_detection_config
from backend.sinks import AlertSink, JsonlAlertSink, LoggingAlertSink

load_dotenv()

logger = logging.getLogger("backend")


def build_engine(use_models: Optional[bool] = None) -> AnomalyEngine:
    """
    Create the process-wide engine, with the PyTorch models when enabled.
    """
    from inference.config import USE_MODELS, default_model_config

    if use_models is None:
        use_models = USE_MODELS
    if not use_models:
        logger.info("USE_MODELS is off; pattern and injury detectors disabled")
        return AnomalyEngine(settings=config.anomaly)

    from inference import TorchAutoencoder, TorchSequenceRiskModel

    model_config = default_model_config()
    autoencoder = TorchAutoencoder(model_config)
    risk_model = TorchSequenceRiskModel(model_config)
    autoencoder.load()
    risk_model.load()
    logger.info(
        "Models loaded (weights_available=%s, device=%s)",
        model_config.weights_available,
        model_config.device,
    )
    return AnomalyEngine(reconstruction_model=autoencoder, risk_model=risk_model, settings=config.anomaly)


def build_loop(data_dir: str, output: Optional[str], use_models: Optional[bool] = None) -> MonitoringLoop:
    source = JSONSubjectSource(data_dir)
    subjects = source.subjects()

    sinks: List[AlertSink] = [LoggingAlertSink()]
    if output:
        sinks.append(JsonlAlertSink(output))

    lifecycle = AlertLifecycleManager()
    lifecycle.events.subscribe(
        AlertEvent.RESOLVED,
        lambda alert: logger.info("Resolved: %s (%s)", alert.anomaly.description, alert.id),
    )
    lifecycle.events.subscribe(
        AlertEvent.PURGED,
        lambda alert: logger.info("Purged after retention window: %s", alert.id),
    )

    return MonitoringLoop(
        engine=build_engine(use_models),
        subjects=subjects,
        metrics_provider=source,
        market_provider=source,
        health_provider=source,
        sinks=sinks,
        lifecycle=lifecycle,
        correlator=Correlator(lifecycle.config),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Fantasy anomaly monitor")
    parser.add_argument("--data-dir", required=True, help="Directory with subjects.json and per-subject JSON")
    parser.add_argument("--output", default=None, help="Append anomalies as JSON lines to this file")
    parser.add_argument("--cycles", type=int, default=None, help="Stop after this many cycles")
    parser.add_argument("--no-models", action="store_true", help="Run without the PyTorch models")
    args = parser.parse_args()

    setup_logging("", config.log_level)

    try:
        loop = build_loop(args.data_dir, args.output, use_models=False if args.no_models else None)
        asyncio.run(loop.run(default_detection_config(), max_cycles=args.cycles))
    except KeyboardInterrupt:
        logger.info("Interrupted; monitor stopped")
    except AnomalyDetectionError as exc:
        logger.error("Monitor failed to start: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
