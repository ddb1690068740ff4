import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse

from .config import settings
from .dispatcher import Dispatcher
from .globals import ClientSession, sessions, templates
from .models import CommandResult, OutputLine

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependencies ---
def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME)
) -> Optional[str]:
    return session_id


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_active_session(session_id: Optional[str]) -> Optional[ClientSession]:
    if not session_id or session_id not in sessions:
        return None
    session = sessions[session_id]
    if datetime.now() - session.created_at > timedelta(
        minutes=settings.SESSION_TIMEOUT_MINUTES
    ):
        del sessions[session_id]
        return None
    return session


def _serialize(mode: str, lines: List[OutputLine]) -> dict:
    return {"mode": mode, "lines": [line.model_dump(mode="json") for line in lines]}


def _apply(session: ClientSession, result: CommandResult) -> dict:
    session.state = result.state
    session.transcript.extend(result.lines)
    return _serialize(result.mode_name, result.lines)


# --- Routes ---
@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    return templates.TemplateResponse(
        request, "terminal.html", {"project_name": settings.PROJECT_NAME}
    )


@router.post("/api/start")
async def start_session(
    session_id: Optional[str] = Depends(get_session_id),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    session = get_active_session(session_id)
    if session:
        # Page reload: replay what the user has already seen.
        return _serialize(session.state.mode.name, list(session.transcript))

    result = await dispatcher.start()
    new_id = str(uuid.uuid4())
    session = ClientSession(state=result.state)
    sessions[new_id] = session
    logger.info(f"New session: {new_id} [Mode: {result.mode_name}]")

    response = JSONResponse(_apply(session, result))
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=new_id,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/api/command")
async def submit_command(
    line: str = Form(""),
    session_id: Optional[str] = Depends(get_session_id),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    session = get_active_session(session_id)
    if not session:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    async with session.lock:
        result = await dispatcher.handle(session.state, line)
        return _apply(session, result)


@router.post("/api/vocabulary")
async def upload_vocabulary(
    file: UploadFile = File(...),
    session_id: Optional[str] = Depends(get_session_id),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    session = get_active_session(session_id)
    if not session:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    content = await file.read()
    async with session.lock:
        result = await dispatcher.import_vocabulary(
            session.state, content, file.filename or "vocabulary.json"
        )
        return _apply(session, result)


@router.get("/api/history")
async def get_history(session_id: Optional[str] = Depends(get_session_id)):
    session = get_active_session(session_id)
    if not session:
        return JSONResponse({"error": "Session invalid"}, status_code=401)
    return {"history": session.state.history}


@router.post("/api/reset")
async def reset_session(session_id: Optional[str] = Depends(get_session_id)):
    if session_id in sessions:
        del sessions[session_id]
    response = JSONResponse({"status": "success"})
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response
