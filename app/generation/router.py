# FILE: app/generation/router.py
"""
Generation endpoints.

- POST /generate/projects/{id}          run a turn, return the result as JSON
- POST /generate/projects/{id}/stream   run a turn, stream it as SSE
- POST /generate/projects/{id}/cancel   stop a running turn

SSE events (one `data: <json>\\n\\n` per event):
    {"type": "token", "content": "..."}
    {"type": "done", "extracted_count": N, "files": [...], "output_length": N}
    {"type": "cancelled", "output_length": N}
    {"type": "error", "error": "...", "kind": "..."}

Closing the SSE connection cancels the run; the project files are left as
they were.
"""
import asyncio
import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.db import get_db, get_session_factory
from app.generation.service import (
    GenerationError,
    GenerationInProgressError,
    GenerationResult,
    GenerationService,
    InvalidIntentError,
    get_generation_service,
)
from app.projects.service import ProjectNotFoundError, require_project
from app.providers.errors import ProviderError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generation"])


# ============== SCHEMAS ==============

class GenerateRequest(BaseModel):
    intent: str


class GenerateResponse(BaseModel):
    project_id: int
    extracted_count: int
    file_names: List[str]
    output_length: int
    cancelled: bool


class CancelResponse(BaseModel):
    project_id: int
    cancelled: bool


def _result_out(result: GenerationResult) -> GenerateResponse:
    return GenerateResponse(
        project_id=result.project_id,
        extracted_count=result.extracted_count,
        file_names=result.file_names,
        output_length=result.output_length,
        cancelled=result.cancelled,
    )


def _sse(event: dict) -> str:
    return "data: " + json.dumps(event) + "\n\n"


# ============== STREAM ==============

async def _generation_events(service: GenerationService, session_factory, project_id: int, intent: str):
    queue: asyncio.Queue = asyncio.Queue()

    async def sink(delta: str) -> None:
        await queue.put({"type": "token", "content": delta})

    async def worker() -> None:
        db = session_factory()
        try:
            result = await service.run(db, project_id, intent, sink)
            if result.cancelled:
                event = {"type": "cancelled", "output_length": result.output_length}
            else:
                event = {
                    "type": "done",
                    "extracted_count": result.extracted_count,
                    "files": result.file_names,
                    "output_length": result.output_length,
                }
        except ProviderError as e:
            event = {"type": "error", "error": e.message, "kind": e.kind}
        except GenerationError as e:
            event = {"type": "error", "error": str(e), "kind": "generation"}
        except Exception as e:
            logger.exception("[generation] Stream worker failed for project %s", project_id)
            event = {"type": "error", "error": str(e), "kind": "internal"}
        finally:
            db.close()
        await queue.put(event)
        await queue.put(None)

    task = asyncio.create_task(worker())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield _sse(event)
    finally:
        if not task.done():
            logger.info("[generation] Client disconnected, cancelling project %s", project_id)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============== ENDPOINTS ==============

@router.post("/projects/{project_id}", response_model=GenerateResponse)
async def generate(
    project_id: int,
    req: GenerateRequest,
    db: Session = Depends(get_db),
    service: GenerationService = Depends(get_generation_service),
):
    try:
        result = await service.run(db, project_id, req.intent)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidIntentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GenerationInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return _result_out(result)


@router.post("/projects/{project_id}/stream")
async def generate_stream(
    project_id: int,
    req: GenerateRequest,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    service: GenerationService = Depends(get_generation_service),
):
    # Reject up front what would otherwise only surface as an error event
    if not req.intent.strip():
        raise HTTPException(status_code=400, detail="Intent cannot be empty")
    try:
        require_project(db, project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if service.is_running(project_id):
        raise HTTPException(status_code=409, detail=f"Generation already running for project {project_id}")

    return StreamingResponse(
        _generation_events(service, session_factory, project_id, req.intent),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/projects/{project_id}/cancel", response_model=CancelResponse)
def cancel_generation(
    project_id: int,
    service: GenerationService = Depends(get_generation_service),
):
    return CancelResponse(project_id=project_id, cancelled=service.cancel(project_id))
