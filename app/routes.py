"""
REST API: task CRUD for the board, and the voice submission endpoints.
"""

import logging
from datetime import date, datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from engine import EmptyTranscript, EngineConfig, NoAudioProvided, TranscriptionServiceError, VoicePipeline

from .database import get_db
from .task_store import TaskStore, task_to_dict

logger = logging.getLogger(__name__)

tasks_router = APIRouter(prefix="/api/tasks", tags=["tasks"])
voice_router = APIRouter(prefix="/api/voice", tags=["voice"])

# MediaRecorder often labels audio-only recordings video/webm
ALLOWED_CONTENT_TYPES = {
    "audio/webm",
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
    "audio/mp3",
    "audio/mpeg",
    "audio/ogg",
    "audio/mp4",
    "audio/x-m4a",
    "video/webm",
    "application/octet-stream",
}

StatusValue = Literal["To Do", "In Progress", "Done"]
PriorityValue = Literal["Low", "Medium", "High", "Urgent"]


# ============================================================================
# PYDANTIC MODELS
# ============================================================================

class TaskCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[StatusValue] = None
    priority: Optional[PriorityValue] = None
    due_date: Optional[datetime] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[StatusValue] = None
    priority: Optional[PriorityValue] = None
    due_date: Optional[datetime] = None


class ParseRequest(BaseModel):
    transcript: str
    timezone: Optional[str] = None


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_pipeline(request: Request) -> VoicePipeline:
    """The pipeline built once in the app lifespan."""
    return request.app.state.pipeline


def get_config(request: Request) -> EngineConfig:
    return request.app.state.config


# ============================================================================
# TASK ROUTES
# ============================================================================

@tasks_router.get("")
async def list_tasks(
    status: Optional[StatusValue] = None,
    priority: Optional[PriorityValue] = None,
    search: Optional[str] = None,
    due: Optional[Literal["overdue", "range"]] = None,
    due_from: Optional[date] = None,
    due_to: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """List tasks with optional board filters."""
    tasks = TaskStore(db).list_tasks(
        status=status,
        priority=priority,
        search=search,
        due=due,
        due_from=due_from,
        due_to=due_to,
    )
    return {"success": True, "data": [task_to_dict(t) for t in tasks]}


@tasks_router.get("/{task_id}")
async def get_task(task_id: str, db: Session = Depends(get_db)):
    task = TaskStore(db).get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "data": task_to_dict(task)}


@tasks_router.post("", status_code=201)
async def create_task(body: TaskCreate, db: Session = Depends(get_db)):
    if not body.title or not body.title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    task = TaskStore(db).create_task(**body.model_dump())
    return {"success": True, "data": task_to_dict(task)}


@tasks_router.patch("/{task_id}")
@tasks_router.put("/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, db: Session = Depends(get_db)):
    """Partial update. Moving a card between columns is a status change."""
    changes = body.model_dump(exclude_unset=True)
    try:
        task = TaskStore(db).update_task(task_id, changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "data": task_to_dict(task)}


@tasks_router.delete("/{task_id}")
async def delete_task(task_id: str, db: Session = Depends(get_db)):
    if not TaskStore(db).delete_task(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"success": True, "message": "Task deleted successfully"}


# ============================================================================
# VOICE ROUTES
# ============================================================================

@voice_router.post("/transcribe")
async def transcribe_voice(
    audio: Optional[UploadFile] = File(None),
    timezone: Optional[str] = Form(None),
    create_task: bool = Form(False),
    pipeline: VoicePipeline = Depends(get_pipeline),
    config: EngineConfig = Depends(get_config),
    db: Session = Depends(get_db),
):
    """Transcribe a recording and extract task fields from it."""
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file provided")

    content_type = (audio.content_type or "application/octet-stream").split(";")[0].strip()
    if content_type not in ALLOWED_CONTENT_TYPES:
        logger.warning(f"Rejected upload | File: {audio.filename} | Type: {content_type}")
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {content_type}. Only audio files are allowed.",
        )

    audio_bytes = await audio.read()
    if len(audio_bytes) > config.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Audio file exceeds the {config.max_upload_mb}MB limit",
        )

    filename = audio.filename or "audio.webm"
    logger.info(f"Voice upload received | File: {filename} | Size: {len(audio_bytes) / 1024:.1f}KB "
                f"| Timezone: {timezone or 'UTC'}")

    try:
        result = await run_in_threadpool(pipeline.process, audio_bytes, filename, timezone)
    except NoAudioProvided:
        raise HTTPException(status_code=400, detail="No audio file provided")
    except EmptyTranscript:
        raise HTTPException(status_code=400, detail="Transcription produced no usable text")
    except TranscriptionServiceError as e:
        logger.error(f"Transcription failed | File: {filename} | Error: {e} | status={e.status_code} | body={e.body}")
        raise HTTPException(status_code=500, detail="Failed to process voice recording")
    except Exception as e:
        logger.error(f"Voice processing failed | File: {filename} | Error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process voice recording")

    data = result.to_dict()
    if create_task:
        task = TaskStore(db).create_from_fields(result.parsed, result.transcript)
        data["task"] = task_to_dict(task)
    return {"success": True, "data": data}


@voice_router.post("/parse")
async def parse_transcript(body: ParseRequest, pipeline: VoicePipeline = Depends(get_pipeline)):
    """Extract task fields from text that is already transcribed."""
    try:
        parsed = await run_in_threadpool(pipeline.parse, body.transcript, body.timezone)
    except EmptyTranscript:
        raise HTTPException(status_code=400, detail="Transcript is required")
    return {"success": True, "data": parsed.to_dict()}
