import logging

from config import settings


def configure_logging(level: str = None) -> None:
    """
    Configura o logging da aplicação (nível via PDV_LOG_LEVEL).
    """
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
