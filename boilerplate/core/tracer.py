import logging
from typing import Dict, Optional

from opentelemetry import propagate, trace
from opentelemetry.context import Context
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from boilerplate.core.config import TRACER_EXPORTER_ENDPOINT, TRACER_SERVICE_NAME

logger = logging.getLogger(__name__)

_provider: Optional[TracerProvider] = None


def setup_tracer(service_name: str = TRACER_SERVICE_NAME, endpoint: str = TRACER_EXPORTER_ENDPOINT) -> TracerProvider:
    """Installs the global tracer provider once; spans are exported over OTLP when an endpoint is set."""
    global _provider
    if _provider is not None:
        return _provider

    _provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        _provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
        logger.info("Exporting traces to %s", endpoint)
    trace.set_tracer_provider(_provider)
    return _provider


def shutdown_tracer() -> None:
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None


def inject_carrier(context: Optional[Context] = None) -> Dict[str, str]:
    """Serializes the active trace context into a plain string map."""
    carrier: Dict[str, str] = {}
    propagate.inject(carrier, context=context)
    return carrier


def extract_context(carrier: Optional[Dict[str, str]]) -> Context:
    return propagate.extract(carrier or {})
