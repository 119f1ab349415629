from __future__ import annotations

from enum import Enum

from loguru import logger


class ModelSlot(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class ModelFallbackController:
    """Which upstream model a conversation is using.

    Switching is always caller-driven: after quota exhaustion has been shown
    to the user, the caller marks the primary exhausted. Nothing switches or
    retries automatically. Not safe for concurrent requests on one session.
    """

    def __init__(self, primary_model: str, fallback_model: str):
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.active = ModelSlot.PRIMARY

    @property
    def model_name(self) -> str:
        if self.active is ModelSlot.FALLBACK:
            return self.fallback_model
        return self.primary_model

    @property
    def is_fallback(self) -> bool:
        return self.active is ModelSlot.FALLBACK

    def mark_exhausted(self) -> None:
        if self.active is ModelSlot.PRIMARY:
            logger.info(f"Switched to fallback model: {self.fallback_model}")
        self.active = ModelSlot.FALLBACK

    def reset(self) -> None:
        self.active = ModelSlot.PRIMARY
