def test_unknown_flag_is_created_false(client, run, db):
    response = client.get("/api/flags/new_dashboard")
    assert response.json() == {"key": "new_dashboard", "value": False}
    assert run(db.feature_flags.count_documents({"key": "new_dashboard"})) == 1


def test_only_admins_set_flags(client, make_user):
    admin = make_user("admin")
    student = make_user()

    denied = client.put("/api/flags/beta", json={"value": True}, headers=student["headers"])
    assert denied.status_code == 403

    updated = client.put("/api/flags/beta", json={"value": True}, headers=admin["headers"])
    assert updated.json()["value"] is True
    assert updated.json()["updated_by"] == admin["user_id"]

    assert client.get("/api/flags/beta").json()["value"] is True
    assert [f["key"] for f in client.get("/api/flags", headers=admin["headers"]).json()] == ["beta"]


def test_chat_requires_message(client, make_user):
    student = make_user()
    response = client.post("/api/ai/chat", json={}, headers=student["headers"])
    assert response.status_code == 400
    assert response.json()["message"] == "Message is required"


def test_chat_respects_flag(client, make_user, services):
    admin = make_user("admin")
    student = make_user()

    on = client.post("/api/ai/chat", json={"message": "What is recursion?"}, headers=student["headers"])
    assert on.json() == {"reply": "echo: What is recursion?", "enabled": True}

    client.put("/api/flags/ai_chat_enabled", json={"value": False}, headers=admin["headers"])
    off = client.post("/api/ai/chat", json={"message": "Hi"}, headers=student["headers"])
    assert off.json()["enabled"] is False
    assert [c["enabled"] for c in services.tutor.calls] == [True, False]


def test_query_history_and_ownership(client, make_user):
    student = make_user()
    other = make_user()

    empty = client.post("/api/ai/query", json={"query": "   "}, headers=student["headers"])
    assert empty.status_code == 400

    created = client.post("/api/ai/query", json={"query": "Explain closures"}, headers=student["headers"])
    assert created.status_code == 201
    interaction = created.json()
    assert interaction["response"].startswith("A great question!")

    history = client.get("/api/ai/history", headers=student["headers"]).json()
    assert [i["interaction_id"] for i in history] == [interaction["interaction_id"]]

    url = f"/api/ai/{interaction['interaction_id']}"
    assert client.get(url, headers=other["headers"]).status_code == 403
    assert client.delete(url, headers=other["headers"]).status_code == 403
    assert client.delete(url, headers=student["headers"]).json() == {"message": "Interaction deleted"}
    assert client.get(url, headers=student["headers"]).status_code == 404
