"""
OpenTelemetry tracing setup.

Export and auto-instrumentation are opt-in via ``otel_enabled``; when off,
spans are created against the API's no-op provider.
"""

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Tracer

from leasequeue import __version__
from leasequeue.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Global tracer instance
_tracer: Tracer | None = None


def setup_tracing(settings: Settings | None = None) -> Tracer:
    """
    Set up OpenTelemetry tracing.

    Installs an SDK tracer provider with an OTLP exporter when tracing is
    enabled; otherwise leaves the global provider untouched.

    Args:
        settings: Settings to read otel_* options from.

    Returns:
        Tracer: The tracer instance.
    """
    global _tracer

    settings = settings or get_settings()

    if settings.otel_enabled:
        resource = Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=settings.otel_exporter_otlp_endpoint,
                    insecure=True,
                )
            )
        )
        trace.set_tracer_provider(provider)
        logger.info(
            "Tracing enabled",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint},
        )

    _tracer = trace.get_tracer(settings.otel_service_name)
    return _tracer


def instrument_fastapi(app: Any) -> None:
    """Instrument a FastAPI application with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """
    Instrument a SQLAlchemy engine with OpenTelemetry.

    Args:
        engine: A sync Engine (pass ``async_engine.sync_engine``).
    """
    SQLAlchemyInstrumentor().instrument(engine=engine)


def get_tracer() -> Tracer:
    """
    Get the tracer instance, setting up tracing on first use.

    Returns:
        Tracer: The tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = setup_tracing()
    return _tracer
