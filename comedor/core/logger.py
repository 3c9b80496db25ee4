import logging

from ..config.settings import settings


def init_logging(level: str = None) -> logging.Logger:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format='%(asctime)s - %(levelname)s - [%(name)s] %(message)s'
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return logging.getLogger("comedor")
