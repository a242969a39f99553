from __future__ import annotations

from typing import Any

import httpx


def test_closed_task_scenario(api: httpx.Client, task_table: Any) -> None:
    taskid = task_table("OPEN")

    created = api.post("/mytime/tracker", json={"taskid": taskid, "hours": 2})
    assert created.status_code == 200
    assert created.json()["hours"] == 2
    assert created.json()["created_at"] == created.json()["updated_at"]

    task_table.set_status(taskid, "CLOSED")
    rejected = api.post("/mytime/tracker", json={"taskid": taskid, "hours": 3})
    assert rejected.status_code == 400
    assert rejected.json() == {"error": "Cannot add a tracker to a closed task."}

    total = api.get(f"/mytime/tracker/total-hours/{taskid}")
    assert total.status_code == 200
    assert total.json() == {"total_hours": 2}


def test_update_list_and_delete(api: httpx.Client, task_table: Any) -> None:
    taskid = task_table("OPEN")
    ids = []
    for hours in (3, 5, 2):
        created = api.post("/mytime/tracker", json={"taskid": taskid, "hours": hours})
        ids.append(created.json()["tracker_id"])

    updated = api.put(f"/mytime/tracker/update/{ids[0]}", json={"hours": 4})
    assert updated.status_code == 200
    assert updated.json()["taskid"] == taskid
    assert updated.json()["hours"] == 4

    listed = api.get(f"/mytime/tracker/{taskid}")
    assert listed.status_code == 200
    assert [item["tracker_id"] for item in listed.json()] == ids

    deleted = api.delete(f"/mytime/tracker/delete/{ids[1]}")
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Tracker deleted successfully."}

    again = api.delete(f"/mytime/tracker/delete/{ids[1]}")
    assert again.status_code == 404
    assert again.json() == {"error": "Tracker not found."}

    total = api.get(f"/mytime/tracker/total-hours/{taskid}")
    assert total.json() == {"total_hours": 6}


def test_missing_task_is_rejected(api: httpx.Client) -> None:
    response = api.post("/mytime/tracker", json={"taskid": 2_000_000_000, "hours": 1})
    assert response.status_code == 400
    assert response.json() == {"error": "Task not found."}
