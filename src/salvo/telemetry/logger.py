"""Logging helpers with optional OpenTelemetry export."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import TelemetryConfig

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s "
    "| trace_id=%(otelTraceID)s span_id=%(otelSpanID)s"
)

_FILTER_INSTALLED = False
_LOG_HANDLER: logging.Handler | None = None
_LOGGER_PROVIDER: Any = None


class _OtelContextFilter(logging.Filter):
    """Ensures trace/span placeholders exist even when no context is active."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        if not hasattr(record, "otelTraceID"):
            record.otelTraceID = "-"
        if not hasattr(record, "otelSpanID"):
            record.otelSpanID = "-"
        return True


def get_logger(name: str = "salvo") -> logging.Logger:
    """Return a logger inside the ``salvo`` hierarchy."""
    if name != "salvo" and not name.startswith("salvo."):
        name = f"salvo.{name}"
    return logging.getLogger(name)


def configure_console_logging(level: int = logging.WARNING) -> None:
    """Install the default console handler on the root logger once."""
    global _FILTER_INSTALLED
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        for existing in root_logger.handlers:
            existing.addFilter(_OtelContextFilter())
    if not _FILTER_INSTALLED:
        root_logger.addFilter(_OtelContextFilter())
        _FILTER_INSTALLED = True


def init_logging(config: TelemetryConfig) -> logging.Logger:
    """Route salvo logs to the console and, with an endpoint, to the OTLP collector."""
    global _LOGGER_PROVIDER
    logger = get_logger(config.service_name)
    logger.setLevel(logging.INFO)
    configure_console_logging(logging.INFO)
    if not config.otlp_logs_endpoint:
        return logger

    from opentelemetry._logs import set_logger_provider
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

    provider = LoggerProvider(resource=config.resource())
    exporter = OTLPLogExporter(endpoint=config.otlp_logs_endpoint, insecure=True)
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    set_logger_provider(provider)
    _LOGGER_PROVIDER = provider

    _install_root_handler(LoggingHandler(level=logging.INFO, logger_provider=provider))
    return logger


def _install_root_handler(handler: logging.Handler) -> None:
    """Attach the OTLP logging handler to the root logger once."""
    global _LOG_HANDLER
    if _LOG_HANDLER is not None:
        return
    handler.addFilter(_OtelContextFilter())
    logging.getLogger().addHandler(handler)
    _LOG_HANDLER = handler


def shutdown_logging() -> None:
    """Detach the OTLP handler and flush the log provider installed by :func:`init_logging`."""
    global _LOG_HANDLER, _LOGGER_PROVIDER
    if _LOG_HANDLER is not None:
        logging.getLogger().removeHandler(_LOG_HANDLER)
    if _LOGGER_PROVIDER is not None:
        _LOGGER_PROVIDER.shutdown()
    _LOG_HANDLER = None
    _LOGGER_PROVIDER = None
