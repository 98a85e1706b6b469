"""
WebSocket gateway tests over a real /ws connection.
"""


def _setup(client):
    sarah = client.post(
        "/api/session/create", json={"description": "Weekend brunch", "creatorName": "Sarah"}
    ).json()
    mike = client.post("/api/session/current/join", json={"name": "Mike"}).json()
    return sarah, mike


def _subscribe(ws, user_id):
    ws.send_json({"type": "join-session", "data": {"sessionId": "current", "userId": user_id}})
    snapshot = ws.receive_json()
    count = ws.receive_json()
    return snapshot, count


def test_subscribe_gets_snapshot_then_count(client):
    sarah, _ = _setup(client)

    with client.websocket_connect("/ws") as ws:
        snapshot, count = _subscribe(ws, sarah["userId"])

    assert snapshot["type"] == "session-updated"
    assert snapshot["sessionId"] == "current"
    assert [p["name"] for p in snapshot["payload"]["participants"]] == ["Sarah", "Mike"]
    assert count["type"] == "participant-count-updated"
    assert count["payload"] == {"total": 2, "online": 1}


def test_subscribe_with_unknown_user_gets_error(client):
    _setup(client)

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join-session", "data": {"sessionId": "current", "userId": "user_ghost"}})
        error = ws.receive_json()

    assert error["type"] == "error"
    assert error["payload"]["error"] == "NOT_FOUND"


def test_keyword_and_vote_fan_out(client):
    sarah, mike = _setup(client)

    with client.websocket_connect("/ws") as sarah_ws, client.websocket_connect("/ws") as mike_ws:
        _subscribe(sarah_ws, sarah["userId"])
        _subscribe(mike_ws, mike["userId"])
        assert sarah_ws.receive_json()["payload"]["online"] == 2

        mike_ws.send_json(
            {
                "type": "add-keyword",
                "data": {
                    "sessionId": "current",
                    "userId": mike["userId"],
                    "text": "Central-Park",
                    "category": "location",
                },
            }
        )
        for ws in (sarah_ws, mike_ws):
            added = ws.receive_json()
            assert added["type"] == "keyword-added"
            assert added["payload"]["text"] == "central-park"
            assert added["originParticipantId"] == mike["userId"]
            assert ws.receive_json()["type"] == "session-stats-updated"

        keyword_id = added["payload"]["id"]
        response = client.post(
            "/api/session/current/vote",
            json={"userId": sarah["userId"], "keywordId": keyword_id, "value": 1},
        )
        assert response.status_code == 200

        for ws in (sarah_ws, mike_ws):
            vote = ws.receive_json()
            assert vote["type"] == "vote-updated"
            assert vote["payload"]["totalScore"] == 1
            assert vote["originParticipantId"] == sarah["userId"]
            assert ws.receive_json()["type"] == "session-stats-updated"


def test_invalid_commands_reply_with_error(client):
    sarah, _ = _setup(client)

    with client.websocket_connect("/ws") as ws:
        _subscribe(ws, sarah["userId"])

        ws.send_text("not json")
        assert ws.receive_json()["payload"]["message"] == "Malformed message"

        ws.send_json({"type": "dance", "data": {}})
        unknown = ws.receive_json()["payload"]
        assert unknown["field"] == "type"

        ws.send_json({"type": "vote", "data": {"sessionId": "current"}})
        assert ws.receive_json()["payload"]["error"] == "VALIDATION_ERROR"

        ws.send_json(
            {
                "type": "add-keyword",
                "data": {
                    "sessionId": "current",
                    "userId": sarah["userId"],
                    "text": "coffee shop in town now",
                    "category": "food",
                },
            }
        )
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["payload"]["field"] == "text"
        assert error["payload"]["suggestion"] == "coffee-shop-in-town-now"


def test_boolean_vote_is_rejected(client, store):
    sarah, _ = _setup(client)
    keyword = client.post(
        "/api/session/current/keywords",
        json={"userId": sarah["userId"], "text": "pizza", "category": "food"},
    ).json()

    with client.websocket_connect("/ws") as ws:
        _subscribe(ws, sarah["userId"])

        ws.send_json(
            {
                "type": "vote",
                "data": {
                    "sessionId": "current",
                    "userId": sarah["userId"],
                    "keywordId": keyword["id"],
                    "value": True,
                },
            }
        )
        error = ws.receive_json()

    assert error["type"] == "error"
    assert error["payload"]["error"] == "VALIDATION_ERROR"
    assert error["payload"]["field"] == "value"
    assert store.get_session("current").tags[keyword["id"]].votes == {}


def test_typing_is_relayed_to_others(client):
    sarah, mike = _setup(client)

    with client.websocket_connect("/ws") as sarah_ws, client.websocket_connect("/ws") as mike_ws:
        _subscribe(sarah_ws, sarah["userId"])
        _subscribe(mike_ws, mike["userId"])
        sarah_ws.receive_json()  # online count for Mike

        mike_ws.send_json(
            {
                "type": "typing",
                "data": {"sessionId": "current", "userId": mike["userId"], "isTyping": True},
            }
        )
        typing = sarah_ws.receive_json()

    assert typing["type"] == "user-typing"
    assert typing["payload"] == {"userId": mike["userId"], "isTyping": True}


def test_leave_and_disconnect_update_presence(client, store):
    sarah, mike = _setup(client)

    with client.websocket_connect("/ws") as sarah_ws:
        _subscribe(sarah_ws, sarah["userId"])

        with client.websocket_connect("/ws") as mike_ws:
            _subscribe(mike_ws, mike["userId"])
            sarah_ws.receive_json()
            mike_ws.send_json({"type": "leave-session", "data": {"sessionId": "current", "userId": mike["userId"]}})

            assert sarah_ws.receive_json()["type"] == "participant-offline"
            assert sarah_ws.receive_json()["payload"] == {"total": 2, "online": 1}
            left = sarah_ws.receive_json()
            assert left["type"] == "participant-left"
            assert left["payload"] == {"userId": mike["userId"]}

        assert store.participant_counts() == (2, 1)


def test_admin_delete_reaches_subscribers(client):
    sarah, mike = _setup(client)

    with client.websocket_connect("/ws") as mike_ws:
        _subscribe(mike_ws, mike["userId"])

        response = client.request("DELETE", "/api/session/current", json={"userId": sarah["userId"]})
        assert response.status_code == 200

        deleted = mike_ws.receive_json()

    assert deleted["type"] == "session-deleted"
    assert deleted["payload"]["reason"] == "deleted"
    assert deleted["payload"]["adminName"] == "Sarah"
