import logging

from lexindex.core.config import Settings


def setup_logging(settings: Settings):
    level = logging.DEBUG if settings.ENV != "prod" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx logs every request at INFO; too chatty for batch upserts
    logging.getLogger("httpx").setLevel(logging.WARNING)
