"""Tracing helpers built on OpenTelemetry."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanProcessor,
)
from opentelemetry.trace import Tracer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import TelemetryConfig


_TRACER: Tracer | None = None
_TRACER_PROVIDER: TracerProvider | None = None


def get_tracer(name: str = "salvo") -> Tracer:
    """Return the global tracer (lazily initialised)."""
    global _TRACER
    if _TRACER is None:
        _TRACER = trace.get_tracer(name)
    return _TRACER


def _span_processor(config: TelemetryConfig) -> SpanProcessor:
    if config.otlp_traces_endpoint:
        exporter = OTLPSpanExporter(endpoint=config.otlp_traces_endpoint, insecure=True)
        return BatchSpanProcessor(exporter)
    # stdout belongs to the game board and prompts.
    return SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr))


def init_tracing(config: TelemetryConfig) -> Tracer:
    """Install a TracerProvider for salvo.

    Spans go to the OTLP collector when ``otlp_traces_endpoint`` is set and to
    stderr otherwise.
    """
    global _TRACER, _TRACER_PROVIDER

    provider = TracerProvider(resource=config.resource())
    provider.add_span_processor(_span_processor(config))
    trace.set_tracer_provider(provider)

    _TRACER_PROVIDER = provider
    _TRACER = provider.get_tracer(config.service_name)
    return _TRACER


def shutdown_tracing() -> None:
    """Flush pending spans and drop the cached tracer."""
    global _TRACER, _TRACER_PROVIDER
    if _TRACER_PROVIDER is not None:
        _TRACER_PROVIDER.shutdown()
    _TRACER_PROVIDER = None
    _TRACER = None
