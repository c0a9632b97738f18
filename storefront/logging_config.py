import logging
from typing import Optional

from storefront.config import settings


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for the application. Modules log through
    logging.getLogger(__name__); this only decides level and format.
    """
    level_name = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
