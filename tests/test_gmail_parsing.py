import base64
import email
from email import policy

import pytest

from focusmail.config import FocusMailConfig
from focusmail.services.email.providers.gmail import (
    GmailService,
    NotAuthenticatedError,
    build_reply_raw,
    extract_content,
    get_header,
)
from tests.factories import make_email


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode().rstrip("=")


def test_get_header_is_case_insensitive():
    headers = [{"name": "From", "value": "Bob <bob@x.com>"}, {"name": "subject", "value": "Hi"}]

    assert get_header(headers, "from") == "Bob <bob@x.com>"
    assert get_header(headers, "Subject") == "Hi"
    assert get_header(headers, "Date") == ""


def test_extract_multipart_prefers_plain_text():
    payload = {
        "mimeType": "multipart/alternative",
        "body": {"size": 0},
        "parts": [
            {"mimeType": "text/plain", "body": {"data": b64("Hello Ünïcode")}},
            {"mimeType": "text/html", "body": {"data": b64("<p>Hello <b>HTML</b></p>")}},
        ],
    }

    text, html_body = extract_content(payload)

    assert text == "Hello Ünïcode"
    assert html_body == "<p>Hello <b>HTML</b></p>"


def test_extract_nested_html_only_falls_back_to_stripped_text():
    payload = {
        "mimeType": "multipart/mixed",
        "body": {},
        "parts": [
            {"mimeType": "multipart/alternative", "body": {}, "parts": [
                {"mimeType": "text/html", "body": {"data": b64("<div>Sale <i>today</i></div>")}},
            ]},
        ],
    }

    text, html_body = extract_content(payload)

    assert text == "Sale today"
    assert "<i>today</i>" in html_body


def test_extract_single_part_plain_wraps_html():
    text, html_body = extract_content({"mimeType": "text/plain", "body": {"data": b64("a < b")}})

    assert text == "a < b"
    assert "a &lt; b" in html_body and html_body.startswith("<div")


def test_parse_email_defaults(test_config):
    service = GmailService(test_config)
    msg = {
        "id": "m1",
        "threadId": "t1",
        "snippet": "Tom &amp; Jerry",
        "payload": {"mimeType": "text/plain", "headers": [], "body": {"data": b64("x" * 5000)}},
    }

    parsed = service._parse_email(msg)

    assert parsed.subject == "(No Subject)"
    assert parsed.sender == "Unknown"
    assert parsed.snippet == "Tom & Jerry"
    assert len(parsed.body) == 3000


def _decode_raw(raw: str):
    return email.message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)), policy=policy.default)


def test_reply_is_prefixed_and_threaded():
    message = make_email(id="m1", sender="Alice <alice@example.com>", subject="Lunch?",
                         headers={"Message-ID": "<abc@mail.example.com>"})

    mime = _decode_raw(build_reply_raw(message, "Yes, see you at noon, Ünïcode ok"))

    assert mime["To"] == "Alice <alice@example.com>"
    assert mime["Subject"] == "Re: Lunch?"
    assert mime["In-Reply-To"] == "<abc@mail.example.com>"
    assert mime["References"] == "<abc@mail.example.com>"
    assert "see you at noon" in mime.get_content()


@pytest.mark.parametrize("subject", ["Re: Lunch?", "RE: Lunch?"])
def test_reply_does_not_double_prefix(subject):
    mime = _decode_raw(build_reply_raw(make_email(subject=subject), "ok"))
    assert mime["Subject"] == subject


def test_calls_require_authentication(test_config: FocusMailConfig):
    service = GmailService(test_config)

    with pytest.raises(NotAuthenticatedError):
        service.fetch_unread(5)
    # An empty mark-read needs no API call
    assert service.mark_read([]) is True
