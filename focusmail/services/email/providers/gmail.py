import os
import base64
import html
import logging
import wsgiref.simple_server
from email.message import EmailMessage as MimeMessage
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from focusmail.config import FocusMailConfig
from focusmail.lib.shared.models.email import EmailMessage

logger = logging.getLogger(__name__)

UNREAD_QUERY = "is:unread category:primary"
MAX_BODY_CHARS = 3000
# Chunk sizes to stay under Gmail rate limits (429)
FETCH_BATCH_SIZE = 15
MODIFY_BATCH_SIZE = 1000


class NotAuthenticatedError(RuntimeError):
    pass


# --- Payload helpers ---

def get_header(headers: List[Dict[str, str]], name: str) -> str:
    for header in headers or []:
        if header.get('name', '').lower() == name.lower():
            return header.get('value', '')
    return ''


def decode_base64url(data: str) -> str:
    if not data:
        return ''
    # Fix padding for base64 decoding
    data += '=' * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(data).decode('utf-8', errors='replace')
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to decode email body chunk: {e}")
        return ''


def html_to_text(content: str) -> str:
    soup = BeautifulSoup(content, 'html.parser')
    return soup.get_text(separator=' ', strip=True)


def extract_content(payload: Dict[str, Any]) -> Tuple[str, str]:
    """Returns (text, html) bodies, taking the first part of each type."""
    text = ''
    html_body = ''

    body_data = (payload.get('body') or {}).get('data')
    if body_data:
        # Single part email
        content = decode_base64url(body_data)
        if payload.get('mimeType') == 'text/html':
            html_body = content
        elif payload.get('mimeType') == 'text/plain':
            text = content
    else:
        stack = [payload]
        while stack:
            node = stack.pop(0)
            data = (node.get('body') or {}).get('data')
            if node.get('mimeType') == 'text/plain' and data and not text:
                text = decode_base64url(data)
            elif node.get('mimeType') == 'text/html' and data and not html_body:
                html_body = decode_base64url(data)
            stack[0:0] = node.get('parts', [])

    if not text and html_body:
        text = html_to_text(html_body)
    if not html_body and text:
        html_body = f'<div style="font-family: sans-serif; white-space: pre-wrap; color: #000;">{html.escape(text)}</div>'

    return text, html_body


def build_reply_raw(message: EmailMessage, reply_body: str) -> str:
    """Base64url-encoded RFC 2822 reply suitable for users.messages.send."""
    subject = message.subject if message.subject.lower().startswith('re:') else f"Re: {message.subject}"
    parent_id = message.headers.get('Message-ID') or message.id

    mime = MimeMessage()
    mime['To'] = message.sender
    mime['Subject'] = subject
    mime['In-Reply-To'] = parent_id
    mime['References'] = parent_id
    mime.set_content(reply_body, charset='utf-8')

    return base64.urlsafe_b64encode(mime.as_bytes()).decode().rstrip('=')


class GmailService:
    def __init__(self, config: FocusMailConfig):
        self.config = config
        self.service = None
        self.creds = None
        self.SCOPES = ['https://www.googleapis.com/auth/gmail.modify',
                       'https://www.googleapis.com/auth/gmail.send']

    def authenticate(self) -> bool:
        creds = None
        primary_email = self.config.get_user_email()
        token_filename = f"token_{primary_email}.json" if primary_email else "token.json"

        if os.path.exists(token_filename):
            try:
                creds = Credentials.from_authorized_user_file(token_filename, self.SCOPES)
            except (ValueError, OSError) as e:
                logger.warning(f"Error loading token (will re-authenticate): {e}")
                creds = None

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                if not os.path.exists(self.config.gmail_credentials_path):
                    logger.error(f"'{self.config.gmail_credentials_path}' not found. Download the OAuth 2.0 Client ID JSON "
                                 "from Google Cloud Console and save it at that path.")
                    return False

                flow = InstalledAppFlow.from_client_secrets_file(
                    self.config.gmail_credentials_path, self.SCOPES)
                creds = self._authenticate_headless(flow, port=8080)

            # Save the credentials for the next run
            with open(token_filename, 'w') as token:
                token.write(creds.to_json())

        self.creds = creds
        self.service = build('gmail', 'v1', credentials=creds)
        return True

    def _authenticate_headless(self, flow, port=8080):
        """
        Authentication flow for headless/Docker environments.
        Listens on 0.0.0.0 but tells Google to redirect to localhost.
        """
        flow.redirect_uri = f'http://localhost:{port}/'
        auth_url, _ = flow.authorization_url(prompt='consent')

        print("\n⚠️  HEADLESS AUTHENTICATION REQUIRED ⚠️")
        print(f"1. Open this URL in your browser:\n{auth_url}")
        print("2. Log in and allow access.")
        print(f"3. The browser will redirect to localhost:{port}, which this process will catch.")

        auth_code = None

        def app(environ, start_response):
            nonlocal auth_code
            query = environ.get('QUERY_STRING', '')
            params = dict(p.split('=', 1) for p in query.split('&') if '=' in p)

            code = params.get('code')
            if code:
                auth_code = code
                start_response('200 OK', [('Content-Type', 'text/html')])
                return [b'<h1>Authentication Successful!</h1><p>You can close this window and return to FocusMail.</p>']

            start_response('404 Not Found', [('Content-Type', 'text/plain')])
            return [b'Not Found']

        server = wsgiref.simple_server.make_server('0.0.0.0', port, app)
        # Timeout so browser pre-connections don't hang the loop
        server.socket.settimeout(1.0)
        server.handle_error = lambda request, client_address: None

        while auth_code is None:
            server.handle_request()

        flow.fetch_token(code=auth_code)
        return flow.credentials

    def _require_service(self):
        if not self.service:
            raise NotAuthenticatedError("Not authenticated")
        return self.service

    def fetch_unread(self, limit: int = 10) -> List[EmailMessage]:
        service = self._require_service()

        try:
            logger.info(f"[Gmail] Listing up to {limit} unread messages...")
            result = service.users().messages().list(
                userId='me', maxResults=limit, q=UNREAD_QUERY).execute()
            messages = result.get('messages', [])
            if not messages:
                return []

            parsed: Dict[str, EmailMessage] = {}

            def callback(request_id, response, exception):
                if exception:
                    logger.error(f"Error fetching email details: {exception}")
                    return
                email_data = self._parse_email(response)
                if email_data:
                    parsed[request_id] = email_data

            for i in range(0, len(messages), FETCH_BATCH_SIZE):
                batch = service.new_batch_http_request(callback=callback)
                for message in messages[i:i + FETCH_BATCH_SIZE]:
                    batch.add(service.users().messages().get(userId='me', id=message['id'], format='full'),
                              request_id=message['id'])
                batch.execute()

            logger.info(f"[Gmail] Parsed {len(parsed)} of {len(messages)} messages.")
            # Keep Gmail's listing order (newest first)
            return [parsed[m['id']] for m in messages if m['id'] in parsed]
        except HttpError as e:
            if e.resp.status == 403 and 'accessNotConfigured' in str(e):
                logger.critical("Gmail API is not enabled for this project. Enable it in the Google Cloud Console.")
            logger.error(f"Error fetching emails: {e}")
            return []

    def send_reply(self, message: EmailMessage, body: str) -> bool:
        service = self._require_service()
        payload = {'raw': build_reply_raw(message, body)}
        if message.thread_id:
            payload['threadId'] = message.thread_id
        try:
            service.users().messages().send(userId='me', body=payload).execute()
            return True
        except HttpError as e:
            logger.error(f"Error sending reply: {e}")
            return False

    def mark_read(self, ids: List[str]) -> bool:
        if not ids:
            return True
        service = self._require_service()
        try:
            for i in range(0, len(ids), MODIFY_BATCH_SIZE):
                service.users().messages().batchModify(
                    userId='me',
                    body={'ids': ids[i:i + MODIFY_BATCH_SIZE], 'removeLabelIds': ['UNREAD']},
                ).execute()
            return True
        except HttpError as e:
            logger.error(f"Error marking as read: {e}")
            return False

    def get_user_profile(self) -> Dict[str, str]:
        service = self._require_service()
        profile = service.users().getProfile(userId='me').execute()
        return {'email': profile['emailAddress']}

    def _parse_email(self, msg: Dict[str, Any]) -> Optional[EmailMessage]:
        try:
            payload = msg['payload']
            headers = payload.get('headers', [])
            text, html_body = extract_content(payload)

            return EmailMessage(
                id=msg['id'],
                thread_id=msg.get('threadId'),
                sender=get_header(headers, 'From') or 'Unknown',
                subject=get_header(headers, 'Subject') or '(No Subject)',
                snippet=html.unescape(msg.get('snippet', '')),
                date=get_header(headers, 'Date'),
                body=text[:MAX_BODY_CHARS] if text else msg.get('snippet', ''),
                html_body=html_body,
                headers={'Message-ID': get_header(headers, 'Message-ID')} if get_header(headers, 'Message-ID') else {},
            )
        except (KeyError, TypeError) as e:
            logger.error(f"Error parsing email: {e}")
            return None
