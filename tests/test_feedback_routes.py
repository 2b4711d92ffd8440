"""Tests for the /api/feedback endpoints."""


def _submit(client, headers=None, source="app", text="Great app"):
    return client.post(
        "/api/feedback",
        json={"name": "Ann", "email": "ann@example.com", "feedback": text, "source": source},
        headers=headers or {},
    )


def test_anonymous_feedback(client):
    response = _submit(client, source="landing")

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Great app"
    assert body["source"] == "landing"
    assert body["user_id"] is None
    assert body["is_read"] is False


def test_signed_in_feedback_is_linked(client, user):
    response = _submit(client, headers=user["headers"])
    assert response.json()["user_id"] == user["user"]["user_id"]


def test_invalid_token_is_treated_as_anonymous(client):
    response = _submit(client, headers={"Authorization": "Bearer broken"})

    assert response.status_code == 201
    assert response.json()["user_id"] is None


def test_feedback_validation(client):
    bad_source = _submit(client, source="email")
    bad_email = client.post(
        "/api/feedback", json={"name": "Ann", "email": "not-an-email", "feedback": "Hi"}
    )

    assert bad_source.status_code == 400
    assert bad_email.status_code == 400


def test_admin_lists_filters_and_pages(client, admin):
    for i in range(3):
        _submit(client, text=f"app {i}")
    _submit(client, source="landing", text="landing 0")

    first_page = client.get(
        "/api/feedback/admin", params={"page": 1, "limit": 2}, headers=admin["headers"]
    ).json()
    assert first_page["pagination"] == {"page": 1, "limit": 2, "total": 4, "pages": 2}
    assert [f["message"] for f in first_page["feedback"]] == ["landing 0", "app 2"]

    landing = client.get(
        "/api/feedback/admin", params={"source": "landing"}, headers=admin["headers"]
    ).json()
    assert [f["message"] for f in landing["feedback"]] == ["landing 0"]


def test_mark_read_and_delete(client, admin):
    feedback_id = _submit(client).json()["id"]

    marked = client.patch(
        f"/api/feedback/admin/{feedback_id}/read",
        json={"isRead": True},
        headers=admin["headers"],
    )
    assert marked.json()["is_read"] is True

    unread = client.get(
        "/api/feedback/admin", params={"isRead": "false"}, headers=admin["headers"]
    ).json()
    assert unread["pagination"]["total"] == 0

    deleted = client.delete(f"/api/feedback/admin/{feedback_id}", headers=admin["headers"])
    assert deleted.status_code == 200
    missing = client.delete(f"/api/feedback/admin/{feedback_id}", headers=admin["headers"])
    assert missing.status_code == 404


def test_listing_requires_admin(client, user):
    assert client.get("/api/feedback/admin", headers=user["headers"]).status_code == 403
