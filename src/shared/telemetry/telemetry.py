"""OpenTelemetry tracing setup for the API, the database and the workflow engine"""

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import \
    OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (BatchSpanProcessor,
                                            ConsoleSpanExporter, SpanExporter)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from sqlalchemy.ext.asyncio import AsyncEngine

from src.infrastructure.config.settings import Settings

logger = logging.getLogger(__name__)

# Probes and the catalog endpoints are polled constantly and carry no run data
EXCLUDED_URLS = "/health,/workflows/actions/types,/workflows/triggers/types"


def build_exporter(exporter_type: str, otlp_endpoint: str | None) -> SpanExporter | None:
    """Exporter for the configured type; None means spans are sampled but not shipped"""
    if exporter_type == "none":
        return None
    if exporter_type == "otlp":
        if not otlp_endpoint:
            logger.warning("OTLP exporter selected without an endpoint, using console")
            return ConsoleSpanExporter()
        return OTLPSpanExporter(endpoint=otlp_endpoint, insecure=otlp_endpoint.startswith("http://"))
    return ConsoleSpanExporter()


class TelemetryConfig:
    """
    Owns the tracer provider for one application lifetime.

    Spans come from three places: FastAPI requests, SQLAlchemy queries and
    the ``traced`` decorator around workflow engine and service calls.
    """

    def __init__(
        self,
        service_name: str,
        service_version: str,
        environment: str = "development",
        sample_rate: float = 1.0,
    ):
        self.service_name = service_name
        self.service_version = service_version
        self.environment = environment
        self.sample_rate = sample_rate
        self.tracer_provider: TracerProvider | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelemetryConfig":
        return cls(
            service_name=settings.app_name,
            service_version=settings.app_version,
            environment=settings.telemetry_environment,
            sample_rate=settings.telemetry_sample_rate,
        )

    def setup(self, exporter: SpanExporter | None) -> TracerProvider:
        resource = Resource.create(
            {
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                "deployment.environment": self.environment,
            }
        )
        # Child spans follow the sampling decision of the incoming request
        self.tracer_provider = TracerProvider(
            resource=resource, sampler=ParentBased(TraceIdRatioBased(self.sample_rate))
        )
        if exporter is not None:
            self.tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(self.tracer_provider)
        logger.info(
            "OpenTelemetry initialized: service=%s, version=%s, exporter=%s",
            self.service_name,
            self.service_version,
            type(exporter).__name__ if exporter else "none",
        )
        return self.tracer_provider

    def instrument(self, app: FastAPI, engine: AsyncEngine) -> None:
        if not self.tracer_provider:
            return
        FastAPIInstrumentor.instrument_app(
            app, tracer_provider=self.tracer_provider, excluded_urls=EXCLUDED_URLS
        )
        SQLAlchemyInstrumentor().instrument(
            engine=engine.sync_engine, tracer_provider=self.tracer_provider
        )
        logger.info("FastAPI and SQLAlchemy instrumentation enabled")

    def shutdown(self) -> None:
        """Flush remaining spans"""
        if self.tracer_provider:
            try:
                self.tracer_provider.shutdown()
                logger.info("Telemetry shutdown complete")
            except Exception as e:
                logger.error("Error during telemetry shutdown: %s", e)


def configure_telemetry(
    settings: Settings, app: FastAPI, engine: AsyncEngine
) -> TelemetryConfig | None:
    """Set up tracing for the app when enabled; failures leave the app untraced"""
    if not settings.telemetry_enabled:
        logger.info("Distributed tracing disabled in configuration")
        return None

    telemetry = TelemetryConfig.from_settings(settings)
    try:
        telemetry.setup(build_exporter(settings.telemetry_exporter, settings.telemetry_otlp_endpoint))
        telemetry.instrument(app, engine)
    except Exception as e:
        logger.warning("Telemetry initialization failed: %s. Continuing without tracing.", e)
        return None

    set_telemetry(telemetry)
    return telemetry


# Global telemetry instance
_telemetry: TelemetryConfig | None = None


def get_telemetry() -> TelemetryConfig | None:
    """Get global telemetry instance"""
    return _telemetry


def set_telemetry(telemetry: TelemetryConfig | None) -> None:
    """Set global telemetry instance"""
    global _telemetry
    _telemetry = telemetry
