from __future__ import annotations

from fastapi import APIRouter, Request

from lexstream.api.deps import get_available_models
from lexstream.models.schemas import ModelInfo, ModelsResponse

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
async def list_models(request: Request):
    """List the primary and fallback models."""
    runtime = getattr(request.app.state, "chat_runtime", None)
    active = runtime.session.models.model_name if runtime is not None else None
    models = get_available_models(active)
    return ModelsResponse(models=[ModelInfo(**m) for m in models])
