import logging

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: int = logging.INFO, filename: str | None = None) -> None:
    """Send log records to stderr, and to *filename* when given."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if filename:
        handlers.append(logging.FileHandler(filename))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
    )
