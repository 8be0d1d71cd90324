import json

import httpx

from verbtrainer.errors import StoreUnavailable, ValidationError
from verbtrainer.notifier import (
    DEFAULT_SENDER,
    RESEND_API_URL,
    SUBJECT,
    DisplacementNotice,
    ResendNotifier,
    notice_from_payload,
    render_email,
)

NOTICE = DisplacementNotice(
    recipient_email="old@example.com",
    displaced_username="old",
    displaced_score=10,
    new_username="new",
    new_score=12,
)


def _notifier(handler) -> ResendNotifier:
    return ResendNotifier("re_key", client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_notice_from_payload() -> None:
    notice = notice_from_payload(
        {"email": "old@example.com", "username": "old", "score": 10, "newUsername": "new", "newScore": "12"}
    )
    assert notice == NOTICE


def test_notice_from_payload_requires_every_field() -> None:
    complete = {"email": "old@example.com", "username": "old", "score": 10, "newUsername": "new", "newScore": 12}
    for field in complete:
        payload = {key: value for key, value in complete.items() if key != field}
        try:
            notice_from_payload(payload)
            raise AssertionError(f"Expected ValidationError without {field}")
        except ValidationError as exc:
            assert str(exc) == "Missing required fields"


def test_render_email_escapes_names() -> None:
    html = render_email(
        DisplacementNotice(
            recipient_email="x@example.com",
            displaced_username="<b>old</b>",
            displaced_score=3,
            new_username="new",
            new_score=4,
        )
    )
    assert "&lt;b&gt;old&lt;/b&gt;" in html
    assert "Your score of 3 has been beaten by new with a score of 4!" in html


def test_notify_posts_email() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email-1"})

    data = _notifier(handler).notify(NOTICE)
    assert data == {"id": "email-1"}
    assert captured["url"] == RESEND_API_URL
    assert captured["auth"] == "Bearer re_key"
    body = captured["body"]
    assert isinstance(body, dict)
    assert body["from"] == DEFAULT_SENDER
    assert body["to"] == ["old@example.com"]
    assert body["subject"] == SUBJECT
    assert "Hi old," in body["html"]


def test_notify_http_error_raises_store_unavailable() -> None:
    notifier = _notifier(lambda request: httpx.Response(422, json={"message": "bad"}))
    try:
        notifier.notify(NOTICE)
        raise AssertionError("Expected StoreUnavailable")
    except StoreUnavailable as exc:
        assert "422" in str(exc)


def test_notify_without_api_key_raises_store_unavailable() -> None:
    notifier = ResendNotifier(None)
    assert notifier.configured is False
    try:
        notifier.notify(NOTICE)
        raise AssertionError("Expected StoreUnavailable")
    except StoreUnavailable as exc:
        assert "RESEND_API_KEY" in str(exc)
    finally:
        notifier.close()


def test_notify_rejects_blank_recipient() -> None:
    notifier = _notifier(lambda request: httpx.Response(200, json={}))
    blank = DisplacementNotice(
        recipient_email="",
        displaced_username="old",
        displaced_score=1,
        new_username="new",
        new_score=2,
    )
    try:
        notifier.notify(blank)
        raise AssertionError("Expected ValidationError")
    except ValidationError:
        pass
