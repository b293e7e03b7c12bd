"""Tests for per-user progress tracking."""

from aiunk.db.repositories import get_or_create_user_progress, update_user_progress


def test_progress_defaults(db_session, user) -> None:
    progress = get_or_create_user_progress(db_session, user.id)

    assert progress.total_conversations == 0
    assert progress.total_messages == 0
    assert progress.topics_discussed == []
    assert progress.achievements == []
    assert progress.last_topic is None
    assert get_or_create_user_progress(db_session, user.id).id == progress.id


def test_partial_update_merges_sets(db_session, user) -> None:
    update_user_progress(
        db_session, user.id, total_messages=4, topics_discussed=["python", "hustle"]
    )
    progress = update_user_progress(
        db_session,
        user.id,
        topics_discussed=["hustle", "automation"],
        achievements=["first_chat"],
        last_topic="automation",
    )

    assert progress.total_messages == 4
    assert progress.total_conversations == 0
    assert progress.topics_discussed == ["python", "hustle", "automation"]
    assert progress.achievements == ["first_chat"]
    assert progress.last_topic == "automation"


def test_progress_endpoints(client, login_as, user) -> None:
    login_as(client, user)

    initial = client.get("/progress").json()
    assert initial["total_conversations"] == 0
    assert initial["topics_discussed"] == []

    response = client.patch(
        "/progress", json={"total_conversations": 3, "topics_discussed": ["python"]}
    )
    assert response.json() == {"success": True}

    client.patch("/progress", json={"topics_discussed": ["python", "money"], "last_topic": "money"})

    progress = client.get("/progress").json()
    assert progress["total_conversations"] == 3
    assert progress["topics_discussed"] == ["python", "money"]
    assert progress["last_topic"] == "money"


def test_progress_rejects_negative_counters(client, login_as, user) -> None:
    login_as(client, user)

    response = client.patch("/progress", json={"total_messages": -1})

    assert response.status_code == 422
