from typing import Dict, Optional

from fastapi import Header, HTTPException, Request

from focusmail.config import FocusMailConfig
from focusmail.lib.shared.models.email import EmailMessage
from focusmail.services.email.fetcher import EmailFetcher
from focusmail.services.email.orchestrator import ClassificationOrchestrator


def get_config(request: Request) -> FocusMailConfig:
    return request.app.state.config


def get_email_fetcher(request: Request) -> EmailFetcher:
    return request.app.state.email_fetcher


def get_orchestrator(request: Request) -> ClassificationOrchestrator:
    return request.app.state.orchestrator


def get_inbox(request: Request) -> Dict[str, EmailMessage]:
    return request.app.state.inbox


def get_user_id(request: Request) -> str:
    user_id = request.app.state.config.get_user_email()
    if not user_id:
        raise HTTPException(status_code=401, detail="No signed-in user")
    return user_id


def get_api_key(request: Request, x_gemini_api_key: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_gemini_api_key or request.app.state.config.gemini_api_key
