"""
Tests for room endpoints.
"""


def test_create_room_and_invites(client, users, headers, push_pool):
    alice, bob, carol = users
    response = client.post(
        "/api/rooms",
        json={"name": "Birthday", "venue": "Home", "invitees": [bob.id]},
        headers=headers[0]
    )
    assert response.status_code == 201
    data = response.json()["data"]
    room_id = data["room"]["id"]
    assert data["room"]["hostId"] == alice.id
    assert data["room"]["attendeesCount"] == 1
    assert [i["userId"] for i in data["invites"]] == [bob.id]

    invites = client.get("/api/rooms/invites", headers=headers[1]).json()["data"]
    assert [(i["roomId"], i["status"], i["inviter"]["username"]) for i in invites] == [
        (room_id, "pending", "alice")
    ]
    notifications = client.get("/api/notifications", headers=headers[1]).json()["data"]
    assert notifications[0]["content"] == "alice invited you to Birthday"

    forbidden = client.get(f"/api/rooms/{room_id}", headers=headers[1])
    assert forbidden.status_code == 403

    joined = client.patch(f"/api/rooms/{room_id}/invite", json={"accept": True}, headers=headers[1])
    assert joined.status_code == 200
    assert joined.json()["data"]["status"] == "accepted"

    room = client.get(f"/api/rooms/{room_id}", headers=headers[1]).json()["data"]
    assert room["attendeesCount"] == 2
    attendees = client.get(f"/api/rooms/{room_id}/attendees", headers=headers[1]).json()["data"]
    assert [a["username"] for a in attendees] == ["alice", "bob"]

    host_notifications = client.get("/api/notifications", headers=headers[0]).json()["data"]
    assert host_notifications[0]["content"] == "bob accepted your invite to Birthday"

    not_host = client.post(f"/api/rooms/{room_id}/invite", json={"userIds": [carol.id]}, headers=headers[1])
    assert not_host.status_code == 403
    invited = client.post(f"/api/rooms/{room_id}/invite", json={"userIds": [carol.id]}, headers=headers[0])
    assert invited.status_code == 201
    duplicate = client.post(f"/api/rooms/{room_id}/invite", json={"userIds": [carol.id]}, headers=headers[0])
    assert duplicate.status_code == 409


def test_list_rooms(client, users, headers):
    for name in ("One", "Two"):
        client.post("/api/rooms", json={"name": name}, headers=headers[0])

    page = client.get("/api/rooms?page=1", headers=headers[0]).json()["data"]
    assert sorted(r["name"] for r in page["rooms"]) == ["One", "Two"]
    assert page["page"] == 1
    assert page["pageCount"] == 1

    assert client.get("/api/rooms", headers=headers[1]).json()["data"]["rooms"] == []


def test_join_leave_close(client, users, headers):
    alice, bob, _ = users
    room_id = client.post(
        "/api/rooms", json={"name": "Open", "isPrivate": False}, headers=headers[0]
    ).json()["data"]["room"]["id"]

    assert client.post(f"/api/rooms/{room_id}/join", headers=headers[1]).status_code == 200
    assert client.post(f"/api/rooms/{room_id}/join", headers=headers[1]).status_code == 409

    assert client.patch(f"/api/rooms/{room_id}/leave", headers=headers[0]).status_code == 409
    assert client.patch(f"/api/rooms/{room_id}/leave", headers=headers[1]).status_code == 200

    assert client.patch(f"/api/rooms/{room_id}/close", headers=headers[1]).status_code == 403
    closed = client.patch(f"/api/rooms/{room_id}/close", headers=headers[0])
    assert closed.status_code == 200
    assert closed.json()["data"]["isClosed"] is True


def test_close_with_unconsolidated_bills(client, users, headers):
    alice, bob, _ = users
    room_id = client.post(
        "/api/rooms", json={"name": "Open", "isPrivate": False}, headers=headers[0]
    ).json()["data"]["room"]["id"]
    client.post(f"/api/rooms/{room_id}/join", headers=headers[1])
    client.post(
        "/api/bills",
        json={"roomId": room_id, "name": "Snacks", "amount": "9", "payers": [bob.id]},
        headers=headers[0]
    )

    blocked = client.patch(f"/api/rooms/{room_id}/close", headers=headers[0])
    assert blocked.status_code == 409
    assert blocked.json()["message"] == "Cannot perform action with unconsolidated bills"

    removal = client.delete(f"/api/rooms/{room_id}/members/{bob.id}", headers=headers[0])
    assert removal.status_code == 409

    client.post("/api/bills/consolidate", json={"roomId": room_id}, headers=headers[0])
    assert client.delete(f"/api/rooms/{room_id}/members/{bob.id}", headers=headers[0]).status_code == 200
    assert client.patch(f"/api/rooms/{room_id}/close", headers=headers[0]).status_code == 200


def test_unknown_room(client, users, headers):
    response = client.get("/api/rooms/does-not-exist", headers=headers[0])
    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "Room not found", "data": "Room not found"}
