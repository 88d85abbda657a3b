import logging

from exam_assistant.core.config import get_settings

# Chatty client libraries that only need to report problems
_THIRD_PARTY_LOGGERS = ("openai", "httpx", "httpcore", "chromadb", "sqlalchemy.engine")


def setup_logging() -> None:
    """
    Configure logging once at application startup.

    Console output, a single readable format, level from settings.
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    third_party_level = getattr(
        logging, settings.third_party_log_level.upper(), logging.WARNING
    )
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
