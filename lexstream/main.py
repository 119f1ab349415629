from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lexstream.api.routes import chat, models
from lexstream.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    runtime = getattr(app.state, "chat_runtime", None)
    if runtime is not None:
        runtime.session.scheduler.cancel()


app = FastAPI(
    title="Lexstream",
    description="Streaming legal answers with resolved citations",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(chat.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "lexstream"}
