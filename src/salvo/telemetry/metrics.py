"""Metrics helper utilities."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Union

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Histogram, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

_METER_PROVIDER: MeterProvider | None = None
_METER: Meter | None = None
_INSTRUMENTS: dict[str, Union[Counter, Histogram]] = {}

MetricAttributes = Mapping[str, Union[str, bool, int, float]]


def get_meter(name: str = "salvo") -> Meter:
    global _METER
    if _METER is None:
        _METER = otel_metrics.get_meter(name)
    return _METER


def init_metrics(config: TelemetryConfig) -> Meter:
    """Install a MeterProvider; readings are exported only when an endpoint is set."""
    global _METER_PROVIDER, _METER, _INSTRUMENTS

    readers: list[MetricReader] = []
    if config.otlp_metrics_endpoint:
        exporter = OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True)
        readers.append(
            PeriodicExportingMetricReader(
                exporter, export_interval_millis=config.metric_export_interval_ms
            )
        )

    provider = MeterProvider(resource=config.resource(), metric_readers=readers)
    otel_metrics.set_meter_provider(provider)

    _METER_PROVIDER = provider
    _METER = provider.get_meter(config.service_name)
    _INSTRUMENTS = {}
    return _METER


def record_game_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    """Add ``value`` to the counter called ``name``, creating it on first use."""
    instrument = _INSTRUMENTS.get(name)
    if instrument is None:
        instrument = get_meter().create_counter(name)
        _INSTRUMENTS[name] = instrument
    instrument.add(value, attributes=attrs or {})


def record_game_duration(name: str, seconds: float, attrs: MetricAttributes | None = None) -> None:
    """Record one game's wall-clock length on the histogram called ``name``."""
    instrument = _INSTRUMENTS.get(name)
    if instrument is None:
        instrument = get_meter().create_histogram(name, unit="s")
        _INSTRUMENTS[name] = instrument
    instrument.record(seconds, attributes=attrs or {})


def shutdown_metrics() -> None:
    """Export the last readings and drop cached instruments."""
    global _METER_PROVIDER, _METER, _INSTRUMENTS
    if _METER_PROVIDER is not None:
        _METER_PROVIDER.shutdown()
    _METER_PROVIDER = None
    _METER = None
    _INSTRUMENTS = {}
