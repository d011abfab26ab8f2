"""
gridpaths configuration

Loads service configuration from environment variables (and a ``.env`` file
if one exists) with sensible defaults.
"""

import os
import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Service configuration loaded from environment variables."""

    # Flask
    SECRET_KEY: str = os.getenv("GRIDPATHS_SECRET_KEY", "change-me")  # override in production
    HOST: str = os.getenv("GRIDPATHS_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("GRIDPATHS_PORT", "5000"))
    DEBUG: bool = _flag("GRIDPATHS_DEBUG", "false")
    CORS_ORIGINS: str = os.getenv("GRIDPATHS_CORS_ORIGINS", "*")

    # Logging
    LOG_LEVEL: str = os.getenv("GRIDPATHS_LOG_LEVEL", "INFO")

    # Search limits
    DEFAULT_TRACE_LIMIT: int = int(os.getenv("GRIDPATHS_TRACE_LIMIT", "5000"))
    MAX_GRID_CELLS: int = int(os.getenv("GRIDPATHS_MAX_GRID_CELLS", str(256 * 256)))
    MAX_HORIZON: int = int(os.getenv("GRIDPATHS_MAX_HORIZON", "4096"))
    MAX_RUNS: int = int(os.getenv("GRIDPATHS_MAX_RUNS", "100"))

    @classmethod
    def validate(cls) -> None:
        """Raise ValueError for settings the service cannot run with."""
        if not 0 < cls.PORT < 65536:
            raise ValueError(f"GRIDPATHS_PORT must be a valid TCP port, got {cls.PORT}")
        if cls.DEFAULT_TRACE_LIMIT <= 0:
            raise ValueError(f"GRIDPATHS_TRACE_LIMIT must be positive, got {cls.DEFAULT_TRACE_LIMIT}")
        if cls.MAX_GRID_CELLS <= 0:
            raise ValueError(f"GRIDPATHS_MAX_GRID_CELLS must be positive, got {cls.MAX_GRID_CELLS}")
        if cls.MAX_HORIZON < 0:
            raise ValueError(f"GRIDPATHS_MAX_HORIZON must be non-negative, got {cls.MAX_HORIZON}")
        if cls.MAX_RUNS <= 0:
            raise ValueError(f"GRIDPATHS_MAX_RUNS must be positive, got {cls.MAX_RUNS}")
        if cls.LOG_LEVEL.upper() not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"GRIDPATHS_LOG_LEVEL is not a loguru level: {cls.LOG_LEVEL}")

    @classmethod
    def display(cls) -> str:
        lines = [
            "gridpaths configuration:",
            f"  Listen: {cls.HOST}:{cls.PORT}",
            f"  Debug: {cls.DEBUG}",
            f"  CORS origins: {cls.CORS_ORIGINS}",
            f"  Log level: {cls.LOG_LEVEL}",
            f"  Trace limit: {cls.DEFAULT_TRACE_LIMIT}",
            f"  Max grid cells: {cls.MAX_GRID_CELLS}",
            f"  Max horizon: {cls.MAX_HORIZON}",
            f"  Kept runs: {cls.MAX_RUNS}",
        ]
        return "\n".join(lines)


def setup_logger(level: str = "INFO"):
    """Replace loguru's default sink with a formatted stderr sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        level=level.upper(),
        colorize=True,
    )
    return logger
