"""
Composition root for the permissions engine.
"""

from typing import Optional

from prometheus_client import CollectorRegistry

from shared.config import BaseConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector

from .evaluator.conditions import ConditionRegistry, create_default_registry
from .evaluator.engine import ConditionEvaluator


def create_evaluator(
    config: Optional[BaseConfig] = None,
    registry: Optional[ConditionRegistry] = None,
    metrics_registry: Optional[CollectorRegistry] = None
) -> ConditionEvaluator:
    """Create a configured evaluator.

    The condition registry is frozen here: extra condition types must be
    registered on ``registry`` before it is passed in.
    """
    config = config or get_config()
    configure_logging(config.service_name, config.log_level, json_logs=config.json_logs)
    logger = get_logger(f"{config.service_name}.main")

    registry = registry if registry is not None else create_default_registry()
    registry.freeze()

    metrics = None
    if config.metrics_enabled:
        metrics = get_metrics_collector(config.service_name, metrics_registry)

    logger.info(
        "Permission evaluator created",
        env=config.env,
        condition_types=registry.names(),
        metrics_enabled=metrics is not None
    )
    return ConditionEvaluator(registry=registry, metrics=metrics)
