import uvicorn
from telemetry_viz.config import settings
from telemetry_viz.utils.logger import get_logger, log_file_path

logger = get_logger(__name__)


def _insight_model() -> str:
    return settings.GROQ_MODEL if settings.INSIGHT_PROVIDER == "groq" else settings.GEMINI_MODEL


def _insight_key_present() -> bool:
    key = settings.GROQ_API_KEY if settings.INSIGHT_PROVIDER == "groq" else settings.GEMINI_API_KEY
    return bool(key)


def start():
    """Starts the telemetry API server with uvicorn."""
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION} on http://{settings.HOST}:{settings.PORT}")
    logger.info(
        f"Insights: {settings.INSIGHT_PROVIDER}/{_insight_model()} "
        f"(sample {settings.INSIGHT_SAMPLE_ROWS} rows, {settings.INSIGHT_MAX_ATTEMPTS} attempts)"
    )
    if not _insight_key_present():
        logger.warning(
            f"No API key for '{settings.INSIGHT_PROVIDER}'. Uploads will work, insight requests will fail."
        )
    logger.info(f"Upload soft limit {settings.MAX_UPLOAD_SIZE_MB} MB, logging to {log_file_path()}")

    try:
        uvicorn.run(
            "telemetry_viz.api.routes:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Telemetry server stopped.")
    except Exception as e:
        logger.error(f"Failed to start server: {str(e)}")
        raise


if __name__ == "__main__":
    start()
