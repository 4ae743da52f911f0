import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from focusmail.config import FocusMailConfig
from focusmail.dependencies import (
    get_api_key,
    get_config,
    get_email_fetcher,
    get_inbox,
    get_orchestrator,
    get_user_id,
)
from focusmail.lib.shared.models.email import DECISION_CATEGORIES, ClassificationCategory, EmailMessage
from focusmail.mocks.email import DummyEmailFetcher
from focusmail.mocks.store import InMemoryKeyValueStore
from focusmail.services.email.classifier import ClassificationEngine
from focusmail.services.email.fetcher import EmailFetcher
from focusmail.services.email.orchestrator import ClassificationOrchestrator
from focusmail.services.email.providers.gmail import NotAuthenticatedError
from focusmail.services.feedback.backends import FileKeyValueStore
from focusmail.services.feedback.store import FeedbackStore
from focusmail.services.security.encryption import DataEncryptor

logger = logging.getLogger(__name__)


# --- Lifecycle Events ---
@asynccontextmanager
async def startup_event(app: FastAPI):
    config = FocusMailConfig()
    app.state.config = config
    app.state.inbox = {}

    if config.use_mock_data:
        print("🎭 STARTING IN DEMO MODE (Mock Data)")
        app.state.email_fetcher = DummyEmailFetcher(config)
        backend = InMemoryKeyValueStore()
    else:
        app.state.email_fetcher = EmailFetcher(config)
        backend = FileKeyValueStore(config.feedback_store_path, DataEncryptor(config.encryption_key))

    feedback_store = FeedbackStore(backend, max_entries=config.feedback_log_limit)
    engine = ClassificationEngine(config, feedback_store)
    app.state.orchestrator = ClassificationOrchestrator(engine, feedback_store)

    # Feedback logs are keyed by the signed-in user's address
    try:
        if app.state.email_fetcher.authenticate():
            user_email = app.state.email_fetcher.get_user_profile()["email"]
            config.set_user_email(user_email)
            print(f"📧 Signed in as {user_email}")
        else:
            print("⚠️ Gmail authentication failed, running without a user")
    except Exception as e:
        logger.error(f"Startup authentication warning: {e}")

    if not config.gemini_api_key and not config.use_mock_data:
        print("⚠️ GEMINI_API_KEY not set; clients must send X-Gemini-Api-Key")

    yield

    app.state.email_fetcher = None
    app.state.orchestrator = None
    app.state.inbox = {}
    print('Services have been shut down.')


app = FastAPI(
    title="FocusMail API",
    description="Personal / Not Personal triage for your unread Gmail",
    version="0.1.0",
    lifespan=startup_event
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Pydantic Models ---
class ReclassifyRequest(BaseModel):
    category: ClassificationCategory


class ReplyRequest(BaseModel):
    body: str


class MarkReadRequest(BaseModel):
    category: ClassificationCategory


class SystemStatus(BaseModel):
    is_authenticated: bool
    user_email: Optional[str] = None
    demo_mode: bool = False


# --- Helper Functions ---
def _lookup(inbox: Dict[str, EmailMessage], email_id: str) -> EmailMessage:
    message = inbox.get(email_id)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Unknown email {email_id}")
    return message


# --- Endpoints ---
@app.get("/system-status", response_model=SystemStatus)
async def get_system_status(config: FocusMailConfig = Depends(get_config), email_fetcher: EmailFetcher = Depends(get_email_fetcher)):
    return SystemStatus(
        is_authenticated=bool(email_fetcher.creds) and config.get_user_email() is not None,
        user_email=config.get_user_email(),
        demo_mode=config.use_mock_data,
    )


@app.get("/config-status")
async def get_config_status(config: FocusMailConfig = Depends(get_config)):
    return {
        "use_mock_data": config.use_mock_data,
        "env": config.env.value,
        "gemini_model": config.gemini_model,
    }


@app.post("/emails/refresh")
async def refresh_emails(
    limit: Optional[int] = None,
    config: FocusMailConfig = Depends(get_config),
    email_fetcher: EmailFetcher = Depends(get_email_fetcher),
    orchestrator: ClassificationOrchestrator = Depends(get_orchestrator),
    inbox: Dict[str, EmailMessage] = Depends(get_inbox),
    user_id: str = Depends(get_user_id),
    api_key: Optional[str] = Depends(get_api_key),
):
    try:
        fetched = email_fetcher.fetch_unread(limit or config.fetch_limit)
    except NotAuthenticatedError:
        raise HTTPException(status_code=401, detail="Service not authenticated")

    # Demo mail arrives pre-classified
    if config.use_mock_data:
        classified = fetched
    else:
        classified = await orchestrator.classify_batch(fetched, api_key, user_id)

    inbox.clear()
    inbox.update((m.id, m) for m in classified)
    return classified


@app.get("/emails")
async def list_emails(category: Optional[ClassificationCategory] = None, inbox: Dict[str, EmailMessage] = Depends(get_inbox)):
    messages = list(inbox.values())
    if category is None:
        return messages
    if category not in DECISION_CATEGORIES:
        return [m for m in messages if m.classification == category]
    # Unclassified mail shows in the Not Personal column
    return ClassificationOrchestrator.select_for_mark_read(messages, category)


@app.post("/emails/mark-read")
async def mark_emails_read(
    request: MarkReadRequest,
    email_fetcher: EmailFetcher = Depends(get_email_fetcher),
    orchestrator: ClassificationOrchestrator = Depends(get_orchestrator),
    inbox: Dict[str, EmailMessage] = Depends(get_inbox),
):
    if request.category not in DECISION_CATEGORIES:
        raise HTTPException(status_code=422, detail="Only the Personal or Not Personal column can be marked as read")

    before = len(inbox)
    try:
        ok, remaining = orchestrator.mark_all_read(list(inbox.values()), request.category, email_fetcher)
    except NotAuthenticatedError:
        raise HTTPException(status_code=401, detail="Service not authenticated")
    if not ok:
        raise HTTPException(status_code=502, detail="Failed to mark as read")

    inbox.clear()
    inbox.update((m.id, m) for m in remaining)
    return {"status": "success", "marked": before - len(remaining), "remaining": len(remaining)}


@app.post("/emails/{email_id}/reclassify")
async def reclassify_email(
    email_id: str,
    request: ReclassifyRequest,
    orchestrator: ClassificationOrchestrator = Depends(get_orchestrator),
    inbox: Dict[str, EmailMessage] = Depends(get_inbox),
    user_id: str = Depends(get_user_id),
):
    message = _lookup(inbox, email_id)
    if request.category not in DECISION_CATEGORIES:
        raise HTTPException(status_code=422, detail="Emails can only be moved to Personal or Not Personal")

    updated = orchestrator.reclassify(message, request.category, user_id)
    inbox[email_id] = updated
    return updated


@app.post("/emails/{email_id}/reply")
async def reply_to_email(
    email_id: str,
    request: ReplyRequest,
    email_fetcher: EmailFetcher = Depends(get_email_fetcher),
    inbox: Dict[str, EmailMessage] = Depends(get_inbox),
):
    message = _lookup(inbox, email_id)
    try:
        sent = ClassificationOrchestrator.send_reply(message, request.body, email_fetcher)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except NotAuthenticatedError:
        raise HTTPException(status_code=401, detail="Service not authenticated")
    if not sent:
        raise HTTPException(status_code=502, detail="Failed to send reply")
    return {"status": "success", "message": f"Reply sent to {message.sender}"}


@app.get("/feedback")
async def get_feedback(orchestrator: ClassificationOrchestrator = Depends(get_orchestrator), user_id: str = Depends(get_user_id)) -> List[dict]:
    return [entry.to_dict() for entry in orchestrator.get_feedback_log(user_id)]


@app.delete("/feedback/{timestamp}")
async def delete_feedback(timestamp: int, orchestrator: ClassificationOrchestrator = Depends(get_orchestrator), user_id: str = Depends(get_user_id)):
    deleted = orchestrator.delete_feedback_entry(timestamp, user_id)
    return {"status": "success", "deleted": deleted}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
