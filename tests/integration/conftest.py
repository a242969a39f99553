from __future__ import annotations

import os
import threading
import time
from collections.abc import Iterator
from typing import Any

import httpx
import pytest
import uvicorn

from mytime_tracker.app.settings import Settings
from mytime_tracker.main import create_app


@pytest.fixture
def database_url() -> str:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip(
            "Set RUN_POSTGRES_INTEGRATION_TESTS=1 and MYTIME_DATABASE_URL "
            "to run integration tests against PostgreSQL."
        )
    url = os.getenv("MYTIME_DATABASE_URL")
    if not url:
        pytest.skip("MYTIME_DATABASE_URL is required for integration tests.")
    return url


@pytest.fixture
def task_table(database_url: str) -> Iterator[Any]:
    """Yield a callable that inserts a task row and returns its taskid."""
    import psycopg

    created: list[int] = []
    with psycopg.connect(database_url) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                taskid SERIAL PRIMARY KEY,
                status TEXT NOT NULL
            )
            """)
        conn.commit()

    def add_task(status: str = "OPEN") -> int:
        with psycopg.connect(database_url) as conn:
            row = conn.execute(
                "INSERT INTO tasks (status) VALUES (%s) RETURNING taskid",
                (status,),
            ).fetchone()
            conn.commit()
        created.append(int(row[0]))
        return int(row[0])

    def set_status(taskid: int, status: str) -> None:
        with psycopg.connect(database_url) as conn:
            conn.execute("UPDATE tasks SET status = %s WHERE taskid = %s", (status, taskid))
            conn.commit()

    add_task.set_status = set_status  # type: ignore[attr-defined]
    yield add_task

    with psycopg.connect(database_url) as conn:
        for taskid in created:
            conn.execute("DELETE FROM task_tracker WHERE taskid = %s", (taskid,))
            conn.execute("DELETE FROM tasks WHERE taskid = %s", (taskid,))
        conn.commit()


@pytest.fixture
def api(database_url: str, task_table: Any) -> Iterator[httpx.Client]:
    """Serve the tracker app on an ephemeral port and yield an HTTP client for it."""
    app = create_app(settings_override=Settings(database_url=database_url))
    server = uvicorn.Server(
        uvicorn.Config(app, host="127.0.0.1", port=0, log_level="warning", lifespan="on")
    )
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 20.0
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            pytest.fail("Tracker server did not start against PostgreSQL.")
        time.sleep(0.05)

    port = server.servers[0].sockets[0].getsockname()[1]
    try:
        with httpx.Client(base_url=f"http://127.0.0.1:{port}", timeout=20.0) as client:
            yield client
    finally:
        server.should_exit = True
        thread.join(timeout=5)
