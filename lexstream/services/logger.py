"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from lexstream.config import settings

# Configure loguru
LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(exist_ok=True)

# Remove default handler
logger.remove()

# Add console handler with color
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

# Add file handler
logger.add(
    LOG_DIR / "lexstream_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",  # New file at midnight
    retention="7 days",
    compression="zip",
)

# Reduce noise from framework/network libraries
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    chunks: int = 0,
    chars: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log one streaming generation call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "chunks": chunks,
        "chars": chars,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if error:
        logger.error(f"LLM_CALL_FAILED: {call_data}")
    else:
        logger.info(f"LLM_CALL: {call_data}")


def log_turn_step(
    turn_id: str,
    step_type: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log one stage of a chat turn."""
    step_data = {
        "timestamp": _now(),
        "turn_id": turn_id,
        "step_type": step_type,
        "status": status,
        "data": data,
    }
    logger.info(f"TURN_STEP: {step_data}")


def log_resolution(
    original_url: str,
    resolved_url: str,
    tier: str,
    duration_ms: int = 0,
) -> None:
    """Log how a citation link was resolved."""
    resolution_data = {
        "timestamp": _now(),
        "original_url": original_url,
        "resolved_url": resolved_url,
        "tier": tier,
        "duration_ms": duration_ms,
    }
    if original_url == resolved_url:
        logger.debug(f"CITATION_UNRESOLVED: {resolution_data}")
    else:
        logger.debug(f"CITATION_RESOLVED: {resolution_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
