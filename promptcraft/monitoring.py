# promptcraft/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Driven by the LOG_LEVEL, LOG_AS_JSON, PROMETHEUS_ENABLED, SENTRY_DSN and
ENVIRONMENT settings (see promptcraft.config).
"""

import logging
import time
from typing import Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

from promptcraft.config import get_settings

_settings = get_settings()
PROMETHEUS_ENABLED = _settings.prometheus_enabled


# --- Logger setup
def setup_logger(name: str = "promptcraft", level=None) -> logging.Logger:
    level = logging.getLevelName(_settings.log_level.upper()) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if _settings.log_as_json:
            handler.setFormatter(jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s"
            ))
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if _settings.sentry_dsn:
    sentry_sdk.init(dsn=_settings.sentry_dsn, environment=_settings.environment)
    logger.info("Sentry initialized")


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "promptcraft_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "promptcraft_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)

LLM_CALLS = Counter(
    "promptcraft_llm_calls_total",
    "LLM capability calls",
    ["stage", "outcome"],
)

LLM_LATENCY = Histogram(
    "promptcraft_llm_latency_seconds",
    "LLM call latency in seconds",
    ["stage"],
)

WORKFLOW_TRANSITIONS = Counter(
    "promptcraft_workflow_transitions_total",
    "Enhancement workflow steps",
    ["step", "outcome"],
)

SAVE_TOGGLES = Counter(
    "promptcraft_save_toggles_total",
    "Save / unsave operations",
    ["action"],
)


# --- Helper wrappers (never crash the app)
def _route_template(request) -> str:
    # Label by route template (/api/save/{id}) so ids do not explode cardinality
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def observe_request(start_ts: float, request, status: str):
    try:
        endpoint = _route_template(request)
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def observe_llm_call(start_ts: float, stage: str, outcome: str):
    try:
        LLM_LATENCY.labels(stage=stage).observe(time.time() - start_ts)
        LLM_CALLS.labels(stage=stage, outcome=outcome).inc()
    except Exception:
        pass


def inc_transition(step: str, outcome: str):
    try:
        WORKFLOW_TRANSITIONS.labels(step=step, outcome=outcome).inc()
    except Exception:
        pass


def inc_save_toggle(action: str):
    try:
        SAVE_TOGGLES.labels(action=action).inc()
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST
