from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource

from hop.config import AppConfig


def configure_metrics(app_config: AppConfig) -> MeterProvider:
    """Configure OpenTelemetry metrics with Prometheus exporter."""
    resource = Resource.create(
        {
            SERVICE_NAME: "hop",
            SERVICE_VERSION: app_config.version,
        }
    )

    reader = PrometheusMetricReader()
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    return provider


def get_meter(name: str) -> metrics.Meter:
    """Get a meter for creating metrics."""
    return metrics.get_meter(name)


# Instruments are created against the global proxy provider and start
# recording once configure_metrics installs a real one.
_meter = get_meter("hop")

dials = _meter.create_counter(
    "hop.connection.dials", description="Broker dial sequences by outcome"
)
channels_opened = _meter.create_counter(
    "hop.channels.opened", description="Protocol channels opened"
)
messages_published = _meter.create_counter(
    "hop.messages.published", description="Messages published to topics"
)
messages_pulled = _meter.create_counter(
    "hop.messages.pulled", description="Messages pulled from topics"
)
jobs_resolved = _meter.create_counter(
    "hop.jobs.resolved", description="Jobs resolved by outcome"
)
