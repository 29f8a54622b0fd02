# FILE: app/generation/service.py
"""
Generation service: intent -> provider stream -> extraction -> merge.

One run per project at a time. A run:
1. marks the project `generating`
2. streams deltas from the active model, forwarding each to `on_delta`
3. on completion extracts files from the full buffer, merges them into the
   live set, marks the project `completed` and stores the raw output

Cancellation (cancel() or task cancellation) stops the stream, restores
the previous status and leaves the files exactly as they were. Nothing is
written until the stream has finished.

Provider failures mark the project `error`, go to the operation log and
are re-raised to the caller.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.generation.extractor import parse_files_from_markdown
from app.generation.merger import merge_generated_files
from app.generation.prompts import AUTO_PLANNER_SYSTEM_PROMPT
from app.oplog.service import OperationLog, get_operation_log
from app.projects.service import (
    load_files,
    require_project,
    set_status,
    store_files,
    summarize_files,
)
from app.providers.config_store import get_active_model
from app.providers.errors import ProviderError
from app.providers.gateway import ProviderGateway, get_gateway
from app.providers.schemas import AIConfig, ModelInstance

logger = logging.getLogger(__name__)

DeltaSink = Callable[[str], Union[None, Awaitable[None]]]
ModelResolver = Callable[[Session], Tuple[AIConfig, ModelInstance]]

DESCRIPTION_LIMIT = 50


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GenerationError(Exception):
    """Base exception for generation runs."""
    pass


class InvalidIntentError(GenerationError):
    """Empty request text."""
    pass


class GenerationInProgressError(GenerationError):
    """The project already has a run in flight."""
    pass


# =============================================================================
# RESULT
# =============================================================================

@dataclass
class GenerationResult:
    project_id: int
    extracted_count: int = 0
    file_names: List[str] = field(default_factory=list)
    output_length: int = 0
    cancelled: bool = False


def summarize_intent(intent: str) -> str:
    if len(intent) > DESCRIPTION_LIMIT:
        return intent[:DESCRIPTION_LIMIT] + "..."
    return intent


# =============================================================================
# SERVICE
# =============================================================================

class GenerationService:
    def __init__(
        self,
        gateway: ProviderGateway,
        log: Optional[OperationLog] = None,
        system_prompt: str = AUTO_PLANNER_SYSTEM_PROMPT,
        model_resolver: ModelResolver = get_active_model,
    ):
        self.gateway = gateway
        self.log = log or get_operation_log()
        self.system_prompt = system_prompt
        self._resolve_model = model_resolver
        self._active: Dict[int, asyncio.Event] = {}

    def is_running(self, project_id: int) -> bool:
        return project_id in self._active

    def cancel(self, project_id: int) -> bool:
        """Ask a running generation to stop. False when nothing is running."""
        event = self._active.get(project_id)
        if event is None:
            return False
        event.set()
        logger.info("[generation] Cancel requested for project %s", project_id)
        return True

    async def run(
        self,
        db: Session,
        project_id: int,
        intent: str,
        on_delta: Optional[DeltaSink] = None,
    ) -> GenerationResult:
        """
        Run one generation turn for a project.

        Raises:
            InvalidIntentError: empty intent
            GenerationInProgressError: project already generating
            ProjectNotFoundError: unknown project
            ProviderError: provider/config/transport failure (project -> error)
            Exception: anything else is logged, marks the project `error` and is re-raised
        """
        intent = (intent or "").strip()
        if not intent:
            raise InvalidIntentError("Intent cannot be empty")
        if self.is_running(project_id):
            raise GenerationInProgressError(f"Generation already running for project {project_id}")

        project = require_project(db, project_id)
        config, model = self._resolve_model(db)

        cancel_event = asyncio.Event()
        self._active[project_id] = cancel_event
        try:
            previous_status = project.status
            current_files = load_files(project)

            set_status(db, project, "generating")
            self.log.add_log(f"Initializing request: {intent[:40]}...", level="info", phase="Intake")

            parts: List[str] = []
            try:
                cancelled = await self._stream(
                    config, model, intent, summarize_files(current_files), parts, cancel_event, on_delta,
                )

                output = "".join(parts)
                result = GenerationResult(project_id=project_id, output_length=len(output))

                if cancelled:
                    set_status(db, project, previous_status)
                    self.log.add_log("Generation stopped by user; no changes applied.", level="warn", phase="Generator")
                    result.cancelled = True
                    return result

                if not output:
                    set_status(db, project, previous_status)
                    self.log.add_log("Model returned an empty response; no changes applied.", level="warn", phase="Generator")
                    return result

                extracted = parse_files_from_markdown(output)
                merged = merge_generated_files(current_files, extracted, intent)

                store_files(project, merged.files)
                project.status = "completed"
                project.description = summarize_intent(intent)
                project.last_output = output
                db.commit()
            except ProviderError as e:
                set_status(db, project, "error")
                self.log.add_log(f"Error: {e.message}", level="error", phase="System")
                self.log.add_log("Try re-checking configuration in Terminal.", level="warn", phase="Fix")
                raise
            except asyncio.CancelledError:
                set_status(db, project, previous_status)
                self.log.add_log("Generation aborted; no changes applied.", level="warn", phase="Generator")
                raise
            except Exception as e:
                logger.exception("[generation] Run failed for project %s", project_id)
                self._mark_failed(db, project)
                self.log.add_log(f"Error: {e}", level="error", phase="System")
                raise

            result.extracted_count = merged.extracted_count
            result.file_names = [f.name for f in extracted]

            if merged.extracted_count:
                self.log.add_log(
                    f"Successfully generated {merged.extracted_count} modules.",
                    level="success",
                    phase="Generator",
                )
            else:
                self.log.add_log(
                    "Response contained no file blocks (conversation only).",
                    level="info",
                    phase="Generator",
                )
            return result
        finally:
            self._active.pop(project_id, None)

    @staticmethod
    def _mark_failed(db: Session, project) -> None:
        """Best-effort `error` status after an unexpected failure; the session may be unusable."""
        db.rollback()
        try:
            set_status(db, project, "error")
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("[generation] Could not mark project failed: %s", e)

    async def _stream(
        self,
        config: AIConfig,
        model: ModelInstance,
        intent: str,
        existing_summary: Optional[str],
        parts: List[str],
        cancel_event: asyncio.Event,
        on_delta: Optional[DeltaSink],
    ) -> bool:
        """
        Accumulate deltas into `parts`. Returns True when stopped by cancel().

        The provider call runs as its own task raced against the cancel event,
        so a cancel lands even while the provider is silent.
        """
        def sink(delta: str):
            if cancel_event.is_set():
                return None
            parts.append(delta)
            if on_delta is not None:
                return on_delta(delta)
            return None

        generation = asyncio.ensure_future(
            self.gateway.generate_project_plan(
                config, model, intent, existing_summary, sink, self.system_prompt,
            )
        )
        stop = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({generation, stop}, return_when=asyncio.FIRST_COMPLETED)
            if not generation.done():
                return True
            try:
                generation.result()
            except ProviderError:
                # a failure after cancel() is still a cancel
                if cancel_event.is_set():
                    return True
                raise
            return cancel_event.is_set()
        finally:
            for task in (generation, stop):
                if not task.done():
                    task.cancel()
            await asyncio.gather(generation, stop, return_exceptions=True)


# =============================================================================
# SINGLETON
# =============================================================================

_generation_service: Optional[GenerationService] = None


def get_generation_service() -> GenerationService:
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService(get_gateway())
    return _generation_service
