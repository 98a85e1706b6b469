"""
End-to-end planning journey: three friends agree on a brunch time.

Sarah creates the session, Mike and Alex join over HTTP, Sarah watches the
live feed over /ws, proposes a time, and two +1 votes out of three people
finalize it.
"""


def test_three_friends_reach_consensus(client):
    # Step 1: Sarah creates the session
    sarah = client.post(
        "/api/session/create", json={"description": "weekend brunch", "creatorName": "Sarah"}
    ).json()
    session_id = sarah["sessionId"]

    # Step 2: Mike and Alex join
    mike = client.post(f"/api/session/{session_id}/join", json={"name": "Mike"}).json()
    alex = client.post(f"/api/session/{session_id}/join", json={"name": "Alex"}).json()
    assert len(alex["sessionData"]["participants"]) == 3

    with client.websocket_connect("/ws") as sarah_ws:
        # Step 3: Sarah subscribes and gets the full snapshot first
        sarah_ws.send_json(
            {"type": "join-session", "data": {"sessionId": session_id, "userId": sarah["userId"]}}
        )
        snapshot = sarah_ws.receive_json()
        assert snapshot["type"] == "session-updated"
        assert {p["name"] for p in snapshot["payload"]["participants"]} == {"Sarah", "Mike", "Alex"}
        assert sarah_ws.receive_json()["payload"] == {"total": 3, "online": 1}

        # Step 4: digits are not allowed in proposals
        rejected = client.post(
            f"/api/session/{session_id}/keywords",
            json={"userId": sarah["userId"], "text": "saturday-11am", "category": "time"},
        )
        assert rejected.status_code == 400
        assert rejected.json()["suggestion"] == "saturday-am"

        # Step 5: Sarah proposes a time
        keyword = client.post(
            f"/api/session/{session_id}/keywords",
            json={"userId": sarah["userId"], "text": "saturday-morning", "category": "time"},
        ).json()
        assert sarah_ws.receive_json()["type"] == "keyword-added"
        assert sarah_ws.receive_json()["type"] == "session-stats-updated"

        # Step 6: Mike votes +1 (1/3, still pending)
        first_vote = client.post(
            f"/api/session/{session_id}/vote",
            json={"userId": mike["userId"], "keywordId": keyword["id"], "value": 1},
        ).json()
        assert first_vote["consensusReached"] is False
        assert sarah_ws.receive_json()["type"] == "vote-updated"
        assert sarah_ws.receive_json()["type"] == "session-stats-updated"

        # Step 7: Alex votes +1 (2/3 >= 60%, no negatives)
        second_vote = client.post(
            f"/api/session/{session_id}/vote",
            json={"userId": alex["userId"], "keywordId": keyword["id"], "value": 1},
        ).json()
        assert second_vote["consensusReached"] is True
        assert second_vote["totalScore"] == 2

        assert sarah_ws.receive_json()["type"] == "vote-updated"
        assert sarah_ws.receive_json()["type"] == "session-stats-updated"
        consensus = sarah_ws.receive_json()
        assert consensus["type"] == "consensus-reached"
        assert consensus["payload"]["keywordIds"] == [keyword["id"]]
        assert consensus["originParticipantId"] == alex["userId"]

    # Step 8: the snapshot agrees
    final = client.get(f"/api/session/{session_id}").json()
    assert final["consensus"] == {"finalized": [keyword["id"]], "pending": []}
    assert final["keywords"][0]["totalScore"] == 2

    # Step 9: Mike reloads and recovers his identity by code
    rejoined = client.post(
        f"/api/session/{session_id}/rejoin", json={"userCode": mike["userCode"]}
    ).json()
    assert rejoined["userId"] == mike["userId"]

    # Step 10: Sarah wraps up
    deleted = client.request("DELETE", f"/api/session/{session_id}", json={"userId": sarah["userId"]})
    assert deleted.status_code == 200
    assert client.get("/api/session/health").json()["hasActiveSession"] is False
