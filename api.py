"""HTTP endpoint for roadmap generation.

Run with: python api.py

Endpoints:
- POST /roadmap - Generate a roadmap for {"topic": "..."}
- GET /health - Health check
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from config import RoadmapConfig
from roadmap import RoadmapPipeline

_DISCONNECT_POLL_SECONDS = 0.5

LOGGER = logging.getLogger(__name__)

app = FastAPI(
    title="Research Roadmap API",
    description="Step plan, ranked papers, methodology, gaps and pros/cons for a research topic",
    version="1.0.0",
)

_pipeline: RoadmapPipeline | None = None


class RoadmapRequest(BaseModel):
    topic: str | None = None


def get_pipeline() -> RoadmapPipeline:
    """Lazily build the shared pipeline; it holds configuration only, no request state."""
    global _pipeline
    if _pipeline is None:
        load_dotenv()
        _pipeline = RoadmapPipeline(RoadmapConfig.from_env())
    return _pipeline


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.post("/roadmap")
async def create_roadmap(
    body: RoadmapRequest,
    request: Request,
    pipeline: RoadmapPipeline = Depends(get_pipeline),
) -> dict:
    """Generate a roadmap. Partial failures are reported in roadmap.error, never as 5xx."""
    if not body.topic or not body.topic.strip():
        raise HTTPException(status_code=400, detail="Topic is required")

    cancel_event = threading.Event()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, cancel_event))
    try:
        result = await asyncio.to_thread(pipeline.generate, body.topic, cancel_event)
    finally:
        watcher.cancel()

    return {"roadmap": result.to_dict()}


async def _cancel_on_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            LOGGER.info("Client disconnected; stopping roadmap generation")
            cancel_event.set()
            return
        await asyncio.sleep(_DISCONNECT_POLL_SECONDS)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
