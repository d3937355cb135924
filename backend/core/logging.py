import logging

from .config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure process-wide logging from settings.

    Format: timestamp, level, logger name, message. Safe to call more than once;
    basicConfig is a no-op after the first call.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    # uvicorn installs its own handlers; keep their level aligned with ours.
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)

    # SQL echo is noisy at INFO; only surface engine warnings.
    logging.getLogger("sqlalchemy.engine").setLevel(max(level, logging.WARNING))
