from __future__ import annotations

from pydantic import BaseModel

from lexstream.models.answer import ChatMode


# --- Requests ---


class ChatRequest(BaseModel):
    message: str
    mode: ChatMode = ChatMode.GENERAL


# --- Responses ---


class ModelInfo(BaseModel):
    id: str
    role: str
    active: bool


class ModelsResponse(BaseModel):
    models: list[ModelInfo]


class ResetResponse(BaseModel):
    status: str
    active_model: str
