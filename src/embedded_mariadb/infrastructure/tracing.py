"""OpenTelemetry spans around lifecycle operations.

Until :func:`setup_tracing` installs an SDK provider, spans go to the
OpenTelemetry no-op provider, so the facade can always call :func:`trace_span`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)

from embedded_mariadb import __version__

TRACER_NAME = "embedded_mariadb"


def build_tracer_provider(
    service_name: str = TRACER_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """Create a provider with the requested exporters attached.

    ``exporter`` is attached with a synchronous processor, which is what an
    in-memory exporter needs to see spans as soon as they end.
    """
    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: __version__})
    )
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    if exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


def setup_tracing(
    service_name: str = TRACER_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """Install a global tracer provider and return the package tracer.

    OpenTelemetry allows the global provider to be set once per process;
    later calls keep the first provider.
    """
    trace.set_tracer_provider(build_tracer_provider(service_name, otlp_endpoint, console_export))
    return get_tracer()


def get_tracer(provider: trace.TracerProvider | None = None) -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME, __version__, tracer_provider=provider)


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
    tracer: trace.Tracer | None = None,
) -> Iterator[trace.Span]:
    """Run the block inside a span named ``name``.

    An exception escaping the block is recorded on the span, the span status
    is set to error, and the exception propagates unchanged.
    """
    with (tracer or get_tracer()).start_as_current_span(name, attributes=attributes) as span:
        yield span
