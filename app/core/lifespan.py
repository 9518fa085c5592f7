from contextlib import asynccontextmanager
import logging

from app.core.config.pipeline import get_pipeline_config
from app.services.extractor import extractor_configured

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    # Fail at startup rather than on the first request when the thresholds file is broken.
    config = get_pipeline_config()
    logger.info(
        "startup_ready pipeline_sections=%s extractor_configured=%s",
        sorted(config),
        extractor_configured(),
    )
    yield
    logger.info("shutdown_complete")
