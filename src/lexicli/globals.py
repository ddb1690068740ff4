import asyncio
import os
from collections import deque
from datetime import datetime
from typing import Deque, Dict

from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field

from .config import settings
from .models import AppState, OutputLine

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
templates = Jinja2Templates(directory=TEMPLATE_DIR)


class ClientSession(BaseModel):
    """Dispatcher state kept for one browser, keyed by the session cookie."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: AppState
    transcript: Deque[OutputLine] = Field(
        default_factory=lambda: deque(maxlen=settings.MAX_OUTPUT_LINES)
    )
    created_at: datetime = Field(default_factory=datetime.now)
    # Serializes commands so one line finishes before the next starts.
    lock: asyncio.Lock = Field(default_factory=asyncio.Lock, exclude=True)


sessions: Dict[str, ClientSession] = {}
