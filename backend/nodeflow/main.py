"""FastAPI application with CORS, lifespan, and routes."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .api.routes import router
from .api.websocket import manager
from .nodes import build_registry
from .services.compositor import ImageCompositor
from .services.generation import GenerationClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: node types are registered once, explicitly
    app.state.registry = build_registry()
    app.state.generation = GenerationClient()
    app.state.compositor = ImageCompositor()
    yield


app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.websocket("/ws/workflow/{session_id}")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    await manager.connect(session_id, websocket)
    try:
        while True:
            # Keep connection alive; status flows server -> client only
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(session_id, websocket)
