"""HTTP API for the MoneyWise assistant.

Accepts typed commands as JSON and spoken commands as WAV uploads (transcribed
with Whisper), runs them through the conversation shell of the company and
returns the assistant's answer, the page to open and any data-store
notifications.
"""

import asyncio
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from moneywise import config
from moneywise.conversation import ConversationShell, ShellBusyError
from moneywise.intent_source import IntentSource, LLMIntentSource
from moneywise.models import CreditEntry
from moneywise.router import CommandRouter
from moneywise.storage import JsonFileStore, StoreAccessor
from moneywise.stores import Stores
from moneywise.whatsapp import whatsapp_receipt, whatsapp_reminder

log = logging.getLogger(__name__)

Transcriber = Callable[[bytes], str]


class CommandRequest(BaseModel):
    company: Optional[str] = None
    text: str


class CommandResponse(BaseModel):
    transcript: str
    response: str
    navigate_to: Optional[str] = None
    notifications: List[Dict[str, str]] = []


class Session:
    """Transcript and pending navigation of one company."""

    def __init__(self, company: str, stores: Stores, intents: IntentSource):
        self.navigate_to: Optional[str] = None
        self.router = CommandRouter(stores, navigate=self._navigate)
        self.shell = ConversationShell(self.router, intents, company=company or None,
                                       speak_responses=False)

    def _navigate(self, path: str) -> None:
        self.navigate_to = path


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.sessions = {}
    app.state.last_transcript = ""
    yield


app = FastAPI(title="MoneyWise Assistant API", lifespan=lifespan)


@lru_cache
def get_stores() -> Stores:
    return Stores(StoreAccessor(JsonFileStore(config.DATA_DIR)))


@lru_cache
def get_intent_source() -> IntentSource:
    return LLMIntentSource()


@lru_cache
def _whisper_model():
    import whisper

    return whisper.load_model(config.WHISPER_MODEL)


def _transcribe(content: bytes) -> str:
    # Whisper expects a file path or numpy array; write to temp file
    with tempfile.NamedTemporaryFile(delete=False, suffix=".wav") as tmp:
        tmp.write(content)
        tmp_path = tmp.name
    try:
        result = _whisper_model().transcribe(tmp_path, fp16=False, language="pt")
        return result.get("text", "").strip()
    finally:
        os.remove(tmp_path)


def get_transcriber() -> Transcriber:
    return _transcribe


def _sessions(request: Request) -> Dict[str, Session]:
    if not hasattr(request.app.state, "sessions"):
        request.app.state.sessions = {}
    return request.app.state.sessions


def _session(request: Request, company: Optional[str], stores: Stores,
             intents: IntentSource) -> Session:
    sessions = _sessions(request)
    key = (company or "").strip()
    session = sessions.get(key)
    if session is None:
        session = sessions[key] = Session(key, stores, intents)
    session.shell.intents = intents
    return session


async def _run(session: Session, stores: Stores, text: str, voice: bool) -> CommandResponse:
    session.navigate_to = None
    try:
        if voice:
            reply = await session.shell.submit_transcribed_text(text)
        else:
            reply = await session.shell.submit_text(text)
    except ShellBusyError:
        raise HTTPException(status_code=409, detail="A command is already being processed")
    return CommandResponse(
        transcript=text,
        response=reply.text if reply and reply.text else "",
        navigate_to=session.navigate_to,
        notifications=[n.to_dict() for n in stores.notifier.drain()],
    )


@app.post("/command", response_model=CommandResponse)
async def receive_command(
    body: CommandRequest,
    request: Request,
    stores: Stores = Depends(get_stores),
    intents: IntentSource = Depends(get_intent_source),
) -> Any:
    """Interpret and execute a typed command."""
    session = _session(request, body.company, stores, intents)
    return await _run(session, stores, body.text, voice=False)


@app.post("/voice", response_model=CommandResponse)
async def receive_voice(
    request: Request,
    file: UploadFile = File(...),
    company: Optional[str] = Query(None),
    stores: Stores = Depends(get_stores),
    intents: IntentSource = Depends(get_intent_source),
    transcribe: Transcriber = Depends(get_transcriber),
) -> Any:
    """Receive a WAV audio file, transcribe it and execute it as a voice command."""
    if file.content_type not in ("audio/wav", "audio/x-wav"):
        raise HTTPException(status_code=400, detail="Only WAV audio is supported")
    content = await file.read()
    loop = asyncio.get_running_loop()
    text = await loop.run_in_executor(None, transcribe, content)
    request.app.state.last_transcript = text
    session = _session(request, company, stores, intents)
    return await _run(session, stores, text, voice=True)


@app.get("/transcript")
async def get_transcript(request: Request, company: Optional[str] = Query(None)):
    session = _sessions(request).get((company or "").strip())
    messages = session.shell.transcript if session else []
    return JSONResponse(content=[m.to_dict() for m in messages])


@app.get("/last_transcript")
async def get_last_transcript(request: Request):
    return JSONResponse(content={"last_transcript": getattr(request.app.state, "last_transcript", "")})


@app.get("/companies/{company}/data")
async def get_company_data(company: str, stores: Stores = Depends(get_stores)):
    return JSONResponse(content=stores.snapshot(company))


@app.post("/companies/{company}/credit-entries/{entry_id}/toggle-paid")
async def toggle_credit_entry_paid(company: str, entry_id: str,
                                   stores: Stores = Depends(get_stores)):
    entry = stores.credit_entries.toggle_paid(company, entry_id, stores.transactions)
    if entry is None:
        save_errors = [n for n in stores.notifier.drain() if n.id.endswith("SaveError")]
        if save_errors:
            raise HTTPException(status_code=500, detail=save_errors[0].description)
        raise HTTPException(status_code=404, detail="Credit entry not found")
    return JSONResponse(content={
        "entry": entry.to_dict(),
        "notifications": [n.to_dict() for n in stores.notifier.drain()],
    })


@app.get("/companies/{company}/credit-entries/due")
async def get_due_credit_entries(company: str, stores: Stores = Depends(get_stores)):
    """Entries due today or overdue; the reminder notice is posted once a day."""
    due = stores.credit_entries.remind_due(company)
    return JSONResponse(content={
        "entries": [e.to_dict() for e in due],
        "notifications": [n.to_dict() for n in stores.notifier.drain()],
    })


def _whatsapp_link(company: str, entry_id: str, stores: Stores,
                   build: Callable[[CreditEntry, Optional[str]], Optional[str]],
                   company_name: Optional[str]) -> Dict[str, str]:
    entry = stores.credit_entries.get(company, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Credit entry not found")
    url = build(entry, company_name or company)
    if url is None:
        raise HTTPException(status_code=400, detail="WhatsApp não informado")
    return {"url": url}


@app.get("/companies/{company}/credit-entries/{entry_id}/whatsapp-reminder")
async def get_whatsapp_reminder(company: str, entry_id: str,
                                company_name: Optional[str] = Query(None),
                                stores: Stores = Depends(get_stores)):
    return _whatsapp_link(company, entry_id, stores, whatsapp_reminder, company_name)


@app.get("/companies/{company}/credit-entries/{entry_id}/whatsapp-receipt")
async def get_whatsapp_receipt(company: str, entry_id: str,
                               company_name: Optional[str] = Query(None),
                               stores: Stores = Depends(get_stores)):
    return _whatsapp_link(company, entry_id, stores, whatsapp_receipt, company_name)


# If running directly, start the server (use uvicorn)
if __name__ == "__main__":
    import uvicorn

    config.setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
