import json

import httpx

from verbtrainer import api
from verbtrainer.leaderboard import LeaderboardClient
from verbtrainer.notifier import ResendNotifier

NOTIFY_PAYLOAD = {"email": "old@example.com", "username": "old", "score": 10, "newUsername": "new", "newScore": 12}


def _leaderboard(handler) -> LeaderboardClient:
    transport = httpx.MockTransport(handler)
    return LeaderboardClient("https://example.supabase.co", "key", client=httpx.Client(transport=transport))


def _notifier(handler) -> ResendNotifier:
    return ResendNotifier("re_key", client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_get_scores_returns_rows() -> None:
    rows = [{"id": 1, "username": "ada", "email": None, "score": 5, "accuracy": 50, "verb_type": "all"}]
    response = api.get_scores(_leaderboard(lambda request: httpx.Response(200, json=rows)))
    assert response.status == 200
    assert response.body[0]["username"] == "ada"
    assert response.body[0]["id"] == "1"
    assert response.body[0]["total_attempts"] == 0


def test_get_scores_failure_is_500() -> None:
    response = api.get_scores(_leaderboard(lambda request: httpx.Response(500)))
    assert response.status == 500
    assert response.body == {"error": "Failed to load scores"}


def test_submit_score_validates_payload() -> None:
    leaderboard = _leaderboard(lambda request: httpx.Response(201))
    assert api.submit_score(leaderboard, {"score": 3}).status == 400
    assert api.submit_score(leaderboard, ["not", "a", "dict"]).body == {"error": "Invalid score data"}


def test_submit_score_success_and_failure() -> None:
    ok = api.submit_score(_leaderboard(lambda request: httpx.Response(201)), {"username": "ada", "score": 3})
    assert ok.status == 200
    assert ok.body == {"success": True}

    failed = api.submit_score(_leaderboard(lambda request: httpx.Response(500)), {"username": "ada", "score": 3})
    assert failed.status == 500
    assert failed.body == {"error": "Failed to submit score"}


def test_notify_score_rejects_other_methods() -> None:
    response = api.notify_score(_notifier(lambda request: httpx.Response(200)), NOTIFY_PAYLOAD, method="GET")
    assert response.status == 405
    assert response.body == "Method not allowed. Please use POST."
    assert response.headers["Allow"] == "POST"


def test_notify_score_missing_fields_is_400() -> None:
    response = api.notify_score(_notifier(lambda request: httpx.Response(200)), {"email": "x@example.com"})
    assert response.status == 400
    assert response.body == {"error": "Missing required fields"}


def test_notify_score_success_and_failure() -> None:
    ok = api.notify_score(_notifier(lambda request: httpx.Response(200, json={"id": "e1"})), NOTIFY_PAYLOAD)
    assert ok.status == 200
    assert ok.body == {"id": "e1"}

    failed = api.notify_score(_notifier(lambda request: httpx.Response(502)), NOTIFY_PAYLOAD)
    assert failed.status == 500
    assert failed.body == {"error": "Failed to send notification"}


def test_submit_score_rejects_non_finite_scores() -> None:
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(201)

    leaderboard = _leaderboard(handler)
    for score in (float("nan"), float("inf"), float("-inf")):
        response = api.submit_score(leaderboard, {"username": "ada", "score": score})
        assert response.status == 400
        assert response.body == {"error": "Invalid score data"}
    assert sent == []


def test_submit_score_ignores_non_finite_optional_numbers() -> None:
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(201)

    payload = {"username": "ada", "score": 3, "accuracy": float("inf"), "total_attempts": "nan"}
    response = api.submit_score(_leaderboard(handler), payload)
    assert response.status == 200
    assert json.loads(sent[0].content)[0]["accuracy"] == 0
    assert json.loads(sent[0].content)[0]["total_attempts"] == 0


def test_notify_score_rejects_non_finite_scores() -> None:
    notifier = _notifier(lambda request: httpx.Response(200, json={"id": "e1"}))
    for value in (float("inf"), float("nan")):
        response = api.notify_score(notifier, {**NOTIFY_PAYLOAD, "newScore": value})
        assert response.status == 400
        assert response.body == {"error": "Missing required fields"}
