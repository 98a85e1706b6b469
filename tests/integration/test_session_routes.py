"""
HTTP gateway tests: status codes, camelCase bodies and error mapping.
"""

import pytest

from catchup.models.domain.session_domain import SessionStatus


def _create(client, name="Sarah", description="Weekend brunch"):
    response = client.post(
        "/api/session/create", json={"description": description, "creatorName": name}
    )
    assert response.status_code == 201
    return response.json()


def _join(client, name, session_id="current"):
    response = client.post(f"/api/session/{session_id}/join", json={"name": name})
    assert response.status_code == 200
    return response.json()


def test_create_session(client):
    body = _create(client)

    assert body["sessionId"] == "current"
    assert body["shareLink"] == "/join/current"
    assert body["userId"].startswith("user_")
    assert len(body["userCode"]) == 3


def test_create_session_short_description(client):
    response = client.post("/api/session/create", json={"description": "hi", "creatorName": "Sarah"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["field"] == "description"


def test_create_session_missing_field(client):
    response = client.post("/api/session/create", json={"description": "Weekend brunch"})

    assert response.status_code == 400
    assert response.json()["field"] == "creatorName"


def test_join_returns_snapshot(client):
    creator = _create(client)

    body = _join(client, "Mike")

    snapshot = body["sessionData"]
    assert body["userId"] != creator["userId"]
    assert snapshot["adminUserId"] == creator["userId"]
    assert [p["name"] for p in snapshot["participants"]] == ["Sarah", "Mike"]
    assert snapshot["participants"][1]["isAdmin"] is False


def test_join_name_conflict(client):
    _create(client)

    response = client.post("/api/session/current/join", json={"name": "SARAH"})

    assert response.status_code == 409
    assert response.json()["error"] == "NAME_CONFLICT"
    assert response.json()["field"] == "name"


def test_join_missing_session(client):
    response = client.post("/api/session/current/join", json={"name": "Mike"})

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_join_inactive_session(client, store):
    _create(client)
    store.get_session("current").status = SessionStatus.COMPLETED

    response = client.post("/api/session/current/join", json={"name": "Mike"})

    assert response.status_code == 410
    assert response.json()["error"] == "INACTIVE_SESSION"


def test_rejoin_with_code(client):
    _create(client)
    mike = _join(client, "Mike")

    response = client.post("/api/session/current/rejoin", json={"userCode": mike["userCode"]})

    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == mike["userId"]
    assert body["userData"] == {"name": "Mike", "isCreator": False, "isAdmin": False}
    assert len(body["sessionData"]["participants"]) == 2


def test_rejoin_bad_code_format(client):
    _create(client)

    response = client.post("/api/session/current/rejoin", json={"userCode": "12"})

    assert response.status_code == 400


def test_get_session_and_participants(client):
    _create(client)
    _join(client, "Mike")

    snapshot = client.get("/api/session/current").json()
    participants = client.get("/api/session/current/participants").json()["participants"]

    assert snapshot["id"] == "current"
    assert snapshot["status"] == "active"
    assert [p["name"] for p in participants] == ["Sarah", "Mike"]
    assert "connectionId" not in participants[0]


def test_get_unknown_session(client):
    assert client.get("/api/session/nope").status_code == 404


def test_add_keyword_and_duplicate(client):
    sarah = _create(client)
    mike = _join(client, "Mike")

    first = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "Coffee-Shop", "category": "food"},
    )
    second = client.post(
        "/api/session/current/keywords",
        json={"userId": mike["userId"], "text": "coffee-shop", "category": "food"},
    )

    assert first.status_code == 201
    assert first.json()["text"] == "coffee-shop"
    assert first.json()["wasNewlyCreated"] is True
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["wasNewlyCreated"] is False
    assert second.json()["totalScore"] == 1


def test_add_keyword_invalid_text_has_suggestion(client):
    sarah = _create(client)

    response = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza & beer!", "category": "food"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["field"] == "text"
    assert body["suggestion"]


def test_add_keyword_bad_category(client):
    sarah = _create(client)

    response = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza", "category": "weather"},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "category"


def test_smart_keyword_uses_classifier(client):
    sarah = _create(client)

    response = client.post(
        "/api/session/current/keywords-smart",
        json={"userId": sarah["userId"], "text": "sushi"},
    )

    assert response.status_code == 201
    assert response.json()["category"] == "food"
    assert response.json()["llmCategorized"] is True


def test_smart_keyword_low_confidence_uses_suggestion(client, classifier):
    classifier.confidence = 0.3
    sarah = _create(client)

    response = client.post(
        "/api/session/current/keywords-smart",
        json={"userId": sarah["userId"], "text": "sushi", "suggestedCategory": "activity"},
    )

    assert response.json()["category"] == "activity"
    assert response.json()["llmCategorized"] is False


def test_smart_keyword_rejects_bad_suggestion(client):
    sarah = _create(client)

    response = client.post(
        "/api/session/current/keywords-smart",
        json={"userId": sarah["userId"], "text": "sushi", "suggestedCategory": "weather"},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "suggestedCategory"


def test_create_smart_includes_analysis(client):
    response = client.post(
        "/api/session/create-smart",
        json={"description": "Weekend brunch - where should we eat?", "creatorName": "Sarah"},
    )

    assert response.status_code == 201
    analysis = response.json()["analysis"]
    assert analysis["suggestedCategories"] == ["location", "food"]


def test_vote_flow(client):
    sarah = _create(client)
    mike = _join(client, "Mike")
    keyword = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza", "category": "food"},
    ).json()

    up = client.post(
        "/api/session/current/vote",
        json={"userId": mike["userId"], "keywordId": keyword["id"], "value": 1},
    )
    down = client.post(
        "/api/session/current/vote",
        json={"userId": mike["userId"], "keywordId": keyword["id"], "value": -1},
    )

    assert up.status_code == 200
    assert up.json()["totalScore"] == 1
    assert down.json()["totalScore"] == -1
    assert down.json()["votes"][0]["participantId"] == mike["userId"]
    assert down.json()["keywordId"] == keyword["id"]


@pytest.mark.parametrize("value", [0, 5])
def test_vote_rejects_bad_value(client, value):
    sarah = _create(client)
    keyword = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza", "category": "food"},
    ).json()

    response = client.post(
        "/api/session/current/vote",
        json={"userId": sarah["userId"], "keywordId": keyword["id"], "value": value},
    )

    assert response.status_code == 400
    assert response.json()["field"] == "value"


@pytest.mark.parametrize("value", [True, "1", 1.0])
def test_vote_rejects_non_integer_value(client, value):
    sarah = _create(client)
    keyword = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza", "category": "food"},
    ).json()

    response = client.post(
        "/api/session/current/vote",
        json={"userId": sarah["userId"], "keywordId": keyword["id"], "value": value},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    assert response.json()["field"] == "value"
    assert client.get("/api/session/current").json()["keywords"][0]["votes"] == []


def test_delete_requires_admin(client):
    _create(client)
    mike = _join(client, "Mike")

    response = client.request("DELETE", "/api/session/current", json={"userId": mike["userId"]})

    assert response.status_code == 403
    assert response.json()["error"] == "AUTHORIZATION_ERROR"


def test_admin_delete(client):
    sarah = _create(client)

    response = client.request("DELETE", "/api/session/current", json={"userId": sarah["userId"]})

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Session deleted successfully"}
    assert client.get("/api/session/current").status_code == 404


def test_session_health(client):
    assert client.get("/api/session/health").json()["hasActiveSession"] is False

    _create(client)
    body = client.get("/api/session/health").json()

    assert body["status"] == "ok"
    assert body["hasActiveSession"] is True
    assert body["participantCount"] == 1


def test_llm_info_without_llm(client):
    body = client.get("/api/session/llm-info").json()

    assert body["llm"]["available"] is False
    assert body["llm"]["status"] == "unavailable"
    assert body["features"]["fallbackCategorization"] is True


def test_expired_session_is_gone(client, fake_clock):
    _create(client)

    fake_clock.advance(hours=2)

    assert client.get("/api/session/current").status_code == 404
