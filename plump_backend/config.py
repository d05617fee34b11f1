import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _origins(value):
    if not value or value.strip() == "*":
        return "*"
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get("PLUMP_SECRET_KEY", "dev_secret_key_plump")
    CORS_ALLOWED_ORIGINS = _origins(os.environ.get("PLUMP_CORS_ORIGINS"))
    TRICK_REVEAL_SECONDS = float(os.environ.get("PLUMP_TRICK_REVEAL_SECONDS", "5"))
    FINISHED_GAME_RETENTION_SECONDS = float(os.environ.get("PLUMP_FINISHED_GAME_RETENTION_SECONDS", "3600"))
    RESULTS_FILE = os.environ.get("PLUMP_RESULTS_FILE")
    LOG_LEVEL = os.environ.get("PLUMP_LOG_LEVEL", "INFO")
    HOST = os.environ.get("PLUMP_HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "5050"))
    SOCKETIO_ASYNC_MODE = os.environ.get("PLUMP_SOCKETIO_ASYNC_MODE")


def configure_logging(level="INFO"):
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)
