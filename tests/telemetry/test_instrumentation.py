"""Telemetry instrumentation unit tests."""

from __future__ import annotations

import logging
import sys
from unittest.mock import MagicMock

import pytest
from salvo.engine.attack import AttackOutcome
from salvo.engine.instrumented_game import InstrumentedGameSession
from salvo.engine.ship import Coordinate, Orientation
from salvo.engine.turns import Side
from salvo.telemetry import config as telemetry_config_module
from salvo.telemetry import logger as logger_module
from salvo.telemetry import metrics as metrics_module
from salvo.telemetry import tracer as tracer_module
from salvo.telemetry.config import TelemetryConfig


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value


class DummyTracer:
    def __init__(self) -> None:
        self.span_names: list[str] = []

    def start_as_current_span(self, name: str):
        return DummySpan(self.span_names, name)


def reset_singletons() -> None:
    tracer_module._TRACER = None
    tracer_module._TRACER_PROVIDER = None
    metrics_module._METER = None
    metrics_module._METER_PROVIDER = None
    metrics_module._INSTRUMENTS = {}


def test_lazy_init_tracer_and_meter(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    assert tracer_module.get_tracer() is tracer_module.get_tracer()

    provider_instance = MagicMock()
    provider_instance.get_tracer.return_value = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider_instance))
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module, "BatchSpanProcessor", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())
    tracer_module.init_tracing(
        TelemetryConfig(enable_tracing=True, otlp_traces_endpoint="http://example")
    )
    assert tracer_module._TRACER is provider_instance.get_tracer.return_value

    meter_provider = MagicMock()
    meter_provider.get_meter.return_value = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", MagicMock(return_value=meter_provider))
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(
        metrics_module, "PeriodicExportingMetricReader", MagicMock(return_value=MagicMock())
    )
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    metrics_module.init_metrics(
        TelemetryConfig(enable_metrics=True, otlp_metrics_endpoint="http://example")
    )
    assert metrics_module._METER is meter_provider.get_meter.return_value
    reset_singletons()


def test_record_game_metric_reuses_counter(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_game_metric("salvo_test_total", 1, {"side": "human"})
    metrics_module.record_game_metric("salvo_test_total", 2)

    meter.create_counter.assert_called_once_with("salvo_test_total")
    counter = meter.create_counter.return_value
    counter.add.assert_any_call(1, attributes={"side": "human"})
    counter.add.assert_any_call(2, attributes={})
    reset_singletons()


def test_logging_init_without_endpoint_returns_service_logger() -> None:
    logger = logger_module.init_logging(TelemetryConfig())
    assert logger.name == "salvo"
    assert logger_module.get_logger("engine").name == "salvo.engine"
    assert logger_module.get_logger("salvo.cli").name == "salvo.cli"


def test_shutdown_flushes_providers_and_clears_singletons() -> None:
    reset_singletons()
    trace_provider = MagicMock()
    meter_provider = MagicMock()
    tracer_module._TRACER_PROVIDER = trace_provider
    tracer_module._TRACER = MagicMock()
    metrics_module._METER_PROVIDER = meter_provider
    metrics_module._METER = MagicMock()
    metrics_module._INSTRUMENTS = {"salvo_test_total": MagicMock()}

    telemetry_config_module.shutdown_telemetry()

    trace_provider.shutdown.assert_called_once_with()
    meter_provider.shutdown.assert_called_once_with()
    assert tracer_module._TRACER is None
    assert tracer_module._TRACER_PROVIDER is None
    assert metrics_module._METER is None
    assert metrics_module._METER_PROVIDER is None
    assert metrics_module._INSTRUMENTS == {}


def test_record_game_duration_uses_histogram(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_game_duration("salvo_test_seconds", 12.5, {"winner": "human"})
    metrics_module.record_game_duration("salvo_test_seconds", 3.0)

    meter.create_histogram.assert_called_once_with("salvo_test_seconds", unit="s")
    meter.create_counter.assert_not_called()
    histogram = meter.create_histogram.return_value
    histogram.record.assert_any_call(12.5, attributes={"winner": "human"})
    histogram.record.assert_any_call(3.0, attributes={})
    reset_singletons()


def test_metrics_reader_uses_configured_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    reader_cls = MagicMock(return_value=MagicMock())
    provider_cls = MagicMock(return_value=MagicMock())
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value="exporter"))
    monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", reader_cls)
    monkeypatch.setattr(metrics_module, "MeterProvider", provider_cls)
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    config = TelemetryConfig(
        otlp_metrics_endpoint="http://example", metric_export_interval_ms=250, service_name="salvo-ci"
    )

    metrics_module.init_metrics(config)

    reader_cls.assert_called_once_with("exporter", export_interval_millis=250)
    resource = provider_cls.call_args.kwargs["resource"]
    assert resource.attributes["service.name"] == "salvo-ci"
    reset_singletons()


def test_tracing_without_endpoint_writes_spans_to_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    console_cls = MagicMock(return_value="console")
    simple_cls = MagicMock(return_value="simple")
    provider = MagicMock()
    monkeypatch.setattr(tracer_module, "ConsoleSpanExporter", console_cls)
    monkeypatch.setattr(tracer_module, "SimpleSpanProcessor", simple_cls)
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())

    tracer_module.init_tracing(TelemetryConfig(enable_tracing=True))

    console_cls.assert_called_once_with(out=sys.stderr)
    simple_cls.assert_called_once_with("console")
    provider.add_span_processor.assert_called_once_with("simple")
    reset_singletons()


def test_shutdown_logging_detaches_otlp_handler(monkeypatch: pytest.MonkeyPatch) -> None:
    provider = MagicMock()
    handler = logging.NullHandler()
    monkeypatch.setattr(logger_module, "_LOGGER_PROVIDER", provider)
    monkeypatch.setattr(logger_module, "_LOG_HANDLER", None)
    logger_module._install_root_handler(handler)
    assert handler in logging.getLogger().handlers

    telemetry_config_module.shutdown_telemetry()

    provider.shutdown.assert_called_once_with()
    assert handler not in logging.getLogger().handlers
    assert logger_module._LOGGER_PROVIDER is None
    assert logger_module._LOG_HANDLER is None


def test_shutdown_without_providers_is_noop() -> None:
    reset_singletons()
    telemetry_config_module.shutdown_telemetry()
    assert tracer_module._TRACER_PROVIDER is None
    assert metrics_module._METER_PROVIDER is None


def test_init_telemetry_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(telemetry_config_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(telemetry_config_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(telemetry_config_module, "init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig())
    assert calls == []


def test_init_telemetry_respects_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(telemetry_config_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(telemetry_config_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(telemetry_config_module, "init_logging", lambda cfg: calls.append("lo"))

    config = TelemetryConfig(enable_tracing=True, enable_logging=True)
    telemetry_config_module.init_telemetry(config)
    assert calls == ["tr", "lo"]


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SALVO_ENABLE_TRACING",
        "OTEL_TRACES_ENABLED",
        "SALVO_ENABLE_METRICS",
        "OTEL_METRICS_ENABLED",
        "SALVO_ENABLE_LOGGING",
        "OTEL_LOGS_ENABLED",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "OTEL_SERVICE_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("SALVO_ENABLE_LOGGING", "no")
    monkeypatch.setenv("OTEL_SERVICE_NAME", "salvo-test")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "deployment=ci, bogus ,team=games")
    monkeypatch.setenv("OTEL_METRIC_EXPORT_INTERVAL", "1500")

    config = TelemetryConfig.from_env()

    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.otlp_metrics_endpoint == "http://collector:4317/v1/metrics"
    assert config.enable_tracing is True
    assert config.enable_metrics is True
    assert config.enable_logging is False
    assert config.service_name == "salvo-test"
    assert config.resource_attributes == {"deployment": "ci", "team": "games"}
    assert config.metric_export_interval_ms == 1500

    attributes = config.resource().attributes
    assert attributes["service.name"] == "salvo-test"
    assert attributes["service.namespace"] == "game"
    assert attributes["deployment"] == "ci"


def test_config_defaults_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "SALVO_ENABLE_TRACING",
        "OTEL_TRACES_ENABLED",
        "SALVO_ENABLE_METRICS",
        "OTEL_METRICS_ENABLED",
        "SALVO_ENABLE_LOGGING",
        "OTEL_LOGS_ENABLED",
        "OTEL_SERVICE_NAME",
        "OTEL_SERVICE_NAMESPACE",
        "OTEL_RESOURCE_ATTRIBUTES",
        "OTEL_METRIC_EXPORT_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)

    config = TelemetryConfig.from_env()
    assert config == TelemetryConfig()
    assert config.metric_export_interval_ms == 5000
    assert config.service_name == "salvo"


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()
    calls = {"count": 0}

    def fake_from_env(cls, **overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(
        telemetry_config_module.TelemetryConfig, "from_env", classmethod(fake_from_env)
    )

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def test_instrumented_session_emits_spans_and_metrics(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    metrics_calls: list[tuple[str, float, dict | None]] = []
    logger = MagicMock()

    monkeypatch.setattr("salvo.engine.instrumented_game.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("salvo.engine.instrumented_game.get_logger", lambda *_: logger)
    monkeypatch.setattr(
        "salvo.engine.instrumented_game.record_game_metric",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )
    monkeypatch.setattr(
        "salvo.engine.instrumented_game.record_game_duration",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )

    session = InstrumentedGameSession(rng_seed=0)
    for index in range(len(session.catalog)):
        session.place_ship(Coordinate(index * 2, 0), Orientation.HORIZONTAL)
    assert "salvo.engine.game" in tracer.span_names
    assert "salvo.engine.place_ship" in tracer.span_names
    assert [name for name, _, _ in metrics_calls].count("salvo_game_setup_total") == 1

    tracer.span_names.clear()
    metrics_calls.clear()
    for ship in session.board(Side.BOT).ships:
        for coord in ship.coordinates():
            result = session.attack(coord)
            assert result.outcome in {AttackOutcome.HIT, AttackOutcome.HIT_AND_SUNK}

    assert session.winner is Side.HUMAN
    assert "salvo.engine.attack" in tracer.span_names
    assert "salvo.engine.game_complete" in tracer.span_names
    metric_names = [name for name, _, _ in metrics_calls]
    assert metric_names.count("salvo_attacks_total") == 17
    assert "salvo_attacks_by_outcome_total" in metric_names
    assert metric_names.count("salvo_game_completed_total") == 1
    assert "salvo_game_duration_seconds" in metric_names

    metrics_calls.clear()
    rejected = session.attack(Coordinate(0, 0))
    assert not rejected.ok
    assert [name for name, _, _ in metrics_calls] == ["salvo_game_invalid_attacks_total"]
    logger.warning.assert_called()
