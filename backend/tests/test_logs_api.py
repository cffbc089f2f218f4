from __future__ import annotations

import sys
import uuid
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from conftest import default_habit_id, default_symptom_id  # noqa: E402


def test_symptom_log_against_system_default(client, make_user):
    user = make_user()
    symptom_id = default_symptom_id(client, user["headers"])

    resp = client.post(
        "/api/symptom-logs",
        json={"symptomId": symptom_id, "severity": 7, "notes": "after lunch"},
        headers=user["headers"],
    )
    assert resp.status_code == 201
    log = resp.json()["log"]
    assert log["severity"] == 7
    assert log["symptom"]["name"] == "Headache"
    assert log["loggedAt"].endswith("Z")


def test_cannot_log_another_users_symptom(client, make_user):
    alice = make_user()
    bob = make_user()
    symptom = client.post("/api/symptoms", json={"name": "Alice's"}, headers=alice["headers"]).json()["symptom"]

    resp = client.post("/api/symptom-logs", json={"symptomId": symptom["id"], "severity": 2}, headers=bob["headers"])
    assert resp.status_code == 403
    assert resp.json() == {"error": "Cannot log another user's symptom"}


def test_symptom_log_validation(client, make_user):
    user = make_user()
    symptom_id = default_symptom_id(client, user["headers"])

    too_severe = client.post("/api/symptom-logs", json={"symptomId": symptom_id, "severity": 11}, headers=user["headers"])
    bad_id = client.post("/api/symptom-logs", json={"symptomId": "nope", "severity": 3}, headers=user["headers"])
    long_notes = client.post(
        "/api/symptom-logs",
        json={"symptomId": symptom_id, "severity": 3, "notes": "x" * 1001},
        headers=user["headers"],
    )
    assert too_severe.status_code == bad_id.status_code == long_notes.status_code == 400

    missing = client.post("/api/symptom-logs", json={"symptomId": str(uuid.uuid4()), "severity": 3}, headers=user["headers"])
    assert missing.status_code == 404
    assert missing.json() == {"error": "Symptom not found"}


def test_log_list_filters_and_paginates(client, make_user):
    user = make_user()
    headers = user["headers"]
    headache = default_symptom_id(client, headers, "Headache")
    nausea = default_symptom_id(client, headers, "Nausea")

    for day, symptom_id in enumerate([headache, nausea, headache, headache, nausea], start=1):
        client.post(
            "/api/symptom-logs",
            json={"symptomId": symptom_id, "severity": 3, "loggedAt": f"2024-03-0{day}T09:00:00Z"},
            headers=headers,
        )

    page = client.get("/api/symptom-logs", params={"limit": 2}, headers=headers).json()
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 5, "totalPages": 3}
    assert [log["loggedAt"] for log in page["logs"]] == ["2024-03-05T09:00:00Z", "2024-03-04T09:00:00Z"]

    last = client.get("/api/symptom-logs", params={"limit": 2, "page": 3}, headers=headers).json()
    assert len(last["logs"]) == 1

    only_headache = client.get("/api/symptom-logs", params={"symptomId": headache}, headers=headers).json()
    assert only_headache["pagination"]["total"] == 3

    ranged = client.get(
        "/api/symptom-logs",
        params={"startDate": "2024-03-02T09:00:00Z", "endDate": "2024-03-04T09:00:00Z"},
        headers=headers,
    ).json()
    assert ranged["pagination"]["total"] == 3


def test_limit_above_maximum_is_rejected(client, make_user):
    user = make_user()
    resp = client.get("/api/mood-logs", params={"limit": 101}, headers=user["headers"])
    assert resp.status_code == 400


def test_logs_are_private_to_their_owner(client, make_user):
    alice = make_user()
    bob = make_user()
    log = client.post("/api/mood-logs", json={"moodScore": 4}, headers=alice["headers"]).json()["log"]

    assert client.get("/api/mood-logs", headers=bob["headers"]).json()["pagination"]["total"] == 0

    update = client.patch(f"/api/mood-logs/{log['id']}", json={"moodScore": 1}, headers=bob["headers"])
    assert update.status_code == 403
    assert update.json() == {"error": "Cannot modify another user's log"}

    delete = client.delete(f"/api/mood-logs/{log['id']}", headers=bob["headers"])
    assert delete.status_code == 403
    assert delete.json() == {"error": "Cannot delete another user's log"}


def test_mood_log_update_and_delete(client, make_user):
    user = make_user()
    log = client.post(
        "/api/mood-logs",
        json={"moodScore": 2, "energyLevel": 3, "stressLevel": 4},
        headers=user["headers"],
    ).json()["log"]

    updated = client.patch(f"/api/mood-logs/{log['id']}", json={"moodScore": 5}, headers=user["headers"])
    assert updated.status_code == 200
    assert updated.json()["log"]["moodScore"] == 5
    assert updated.json()["log"]["energyLevel"] == 3

    assert client.patch(f"/api/mood-logs/{log['id']}", json={}, headers=user["headers"]).status_code == 400
    assert client.post("/api/mood-logs", json={"moodScore": 6}, headers=user["headers"]).status_code == 400

    deleted = client.delete(f"/api/mood-logs/{log['id']}", headers=user["headers"])
    assert deleted.status_code == 200
    assert client.delete(f"/api/mood-logs/{log['id']}", headers=user["headers"]).status_code == 404


def test_medication_logs(client, make_user):
    alice = make_user()
    bob = make_user()
    medication = client.post("/api/medications", json={"name": "Metformin"}, headers=alice["headers"]).json()["medication"]

    created = client.post(
        "/api/medication-logs",
        json={"medicationId": medication["id"], "taken": True, "takenAt": "2024-03-01T08:00:00Z"},
        headers=alice["headers"],
    )
    assert created.status_code == 201
    assert created.json()["log"]["takenAt"] == "2024-03-01T08:00:00Z"
    assert created.json()["log"]["medication"]["name"] == "Metformin"

    foreign = client.post(
        "/api/medication-logs",
        json={"medicationId": medication["id"], "taken": False},
        headers=bob["headers"],
    )
    assert foreign.status_code == 403
    assert foreign.json() == {"error": "Cannot log another user's medication"}

    listed = client.get("/api/medication-logs", params={"medicationId": medication["id"]}, headers=alice["headers"])
    assert listed.json()["pagination"]["total"] == 1


def test_habit_log_requires_value_for_tracking_type(client, make_user):
    user = make_user()
    exercise = default_habit_id(client, user["headers"], "Exercise")
    water = default_habit_id(client, user["headers"], "Water Intake")
    sleep = default_habit_id(client, user["headers"], "Sleep Duration")

    missing = client.post("/api/habit-logs", json={"habitId": exercise}, headers=user["headers"])
    assert missing.status_code == 400
    assert missing.json() == {"error": "valueBoolean is required for boolean habits"}

    wrong_field = client.post("/api/habit-logs", json={"habitId": water, "valueBoolean": True}, headers=user["headers"])
    assert wrong_field.json() == {"error": "valueNumeric is required for numeric habits"}

    negative = client.post("/api/habit-logs", json={"habitId": sleep, "valueDuration": -5}, headers=user["headers"])
    assert negative.status_code == 400

    ok = client.post("/api/habit-logs", json={"habitId": water, "valueNumeric": 6}, headers=user["headers"])
    assert ok.status_code == 201
    assert ok.json()["log"]["valueNumeric"] == 6
    assert ok.json()["log"]["habit"]["trackingType"] == "numeric"


def test_habit_log_update_keeps_value_consistent(client, make_user):
    user = make_user()
    exercise = default_habit_id(client, user["headers"], "Exercise")
    water = default_habit_id(client, user["headers"], "Water Intake")
    log = client.post(
        "/api/habit-logs",
        json={"habitId": exercise, "valueBoolean": True},
        headers=user["headers"],
    ).json()["log"]

    moved = client.patch(f"/api/habit-logs/{log['id']}", json={"habitId": water}, headers=user["headers"])
    assert moved.status_code == 400
    assert moved.json() == {"error": "valueNumeric is required for numeric habits"}

    moved = client.patch(
        f"/api/habit-logs/{log['id']}",
        json={"habitId": water, "valueNumeric": 3},
        headers=user["headers"],
    )
    assert moved.status_code == 200
    assert moved.json()["log"]["habitId"] == water
