"""Bootstrap a sink from configuration.

Loads settings (TOML files plus LOGSINK_* variables), configures
structured logging and builds the MongoDB sink:

    from logsink.bootstrap import bootstrap

    sink = bootstrap()
    async with sink:
        await sink.consume({"foo": "bar"})
"""

from logsink.config import get_settings
from logsink.config.settings import Settings
from logsink.db.errors import ValidationError
from logsink.observability.logging import get_logger, setup_logging
from logsink.sink.mongodb import MongoLogSink

logger = get_logger(__name__)


def bootstrap(settings: Settings | None = None) -> MongoLogSink:
    """Configure logging and build the sink described by the settings.

    Args:
        settings: Settings to use instead of the loaded configuration

    Returns:
        A sink that connects on first use

    Raises:
        ValidationError: If the configuration has no [sink] section
    """
    settings = settings or get_settings()

    logging_config = settings.observability.logging
    setup_logging(
        level="DEBUG" if settings.debug else logging_config.level,
        format=logging_config.format,
        redact_secrets=logging_config.redact_secrets,
    )

    if settings.sink is None:
        raise ValidationError("No [sink] section configured")

    logger.info(
        "logsink_bootstrapped",
        app_name=settings.app_name,
        host=settings.sink.hostname,
        database=settings.sink.database,
        collection=settings.sink.collection,
        retention=settings.sink.retention,
    )
    return MongoLogSink(settings.sink)
