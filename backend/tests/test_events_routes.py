import pytest
import psycopg2.errors
from datetime import datetime, timezone

START = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
END = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
CREATED = datetime(2026, 1, 1, 0, 0, tzinfo=timezone.utc)


def event_row(**overrides):
    row = {
        "event_id": 1,
        "name": "Launch",
        "location": "HQ",
        "start_time": START,
        "end_time": END,
        "max_capacity": 2,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    row.update(overrides)
    return row


LAUNCH = {
    "name": "Launch",
    "location": "HQ",
    "start_time": "2030-01-01T10:00",
    "end_time": "2030-01-01T12:00",
    "max_capacity": 2,
}


def test_create_event_success(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = event_row()

    response = client.post("/events", json=LAUNCH)

    assert response.status_code == 201
    data = response.get_json()
    assert data["event_id"] == 1
    assert data["name"] == "Launch"
    assert data["start_time"] == START.isoformat()

    params = mock_cursor.execute.call_args.args[1]
    assert params == ("Launch", "HQ", START, END, 2)


def test_create_event_missing_fields(client, mock_db):
    _, mock_cursor = mock_db

    response = client.post("/events", json={"name": "Launch"})

    assert response.status_code == 422
    errors = response.get_json()["errors"]
    assert set(errors) == {"location", "start_time", "end_time", "max_capacity"}
    mock_cursor.execute.assert_not_called()


def test_create_event_end_before_start(client, mock_db):
    payload = dict(LAUNCH, end_time="2030-01-01T09:00")

    response = client.post("/events", json=payload)

    assert response.status_code == 422
    assert "end_time" in response.get_json()["errors"]


def test_create_event_end_equal_start(client, mock_db):
    payload = dict(LAUNCH, end_time=LAUNCH["start_time"])

    response = client.post("/events", json=payload)

    assert response.status_code == 422


@pytest.mark.parametrize("capacity", [0, -3, "many", True, 1.5])
def test_create_event_bad_capacity(client, mock_db, capacity):
    response = client.post("/events", json=dict(LAUNCH, max_capacity=capacity))

    assert response.status_code == 422
    assert "max_capacity" in response.get_json()["errors"]


def test_create_event_capacity_beyond_integer_column(client, mock_db, executed_sql):
    response = client.post("/events", json=dict(LAUNCH, max_capacity=3000000000))

    assert response.status_code == 422
    assert "max_capacity" in response.get_json()["errors"]
    assert executed_sql() == []


def test_update_event_capacity_beyond_integer_column(client, mock_db, executed_sql):
    response = client.put("/events/1", json={"max_capacity": "3000000000"})

    assert response.status_code == 422
    assert "max_capacity" in response.get_json()["errors"]
    assert executed_sql() == []


def test_create_event_capacity_at_integer_limit(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = event_row(max_capacity=2147483647)

    response = client.post("/events", json=dict(LAUNCH, max_capacity=2147483647))

    assert response.status_code == 201


def test_create_event_name_too_long(client, mock_db):
    response = client.post("/events", json=dict(LAUNCH, name="x" * 256))

    assert response.status_code == 422
    assert "name" in response.get_json()["errors"]


def test_list_events(client, mock_db, executed_sql):
    _, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [event_row(attendee_count=1)]

    response = client.get("/events")

    assert response.status_code == 200
    data = response.get_json()
    assert len(data) == 1
    assert data[0]["name"] == "Launch"
    assert data[0]["attendee_count"] == 1
    assert data[0]["end_time"] == END.isoformat()

    sql = executed_sql()[0]
    assert "WHERE e.start_time >= %s" in sql
    assert "ORDER BY e.start_time ASC" in sql


def test_get_event(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = event_row(attendee_count=0)

    response = client.get("/events/1")

    assert response.status_code == 200
    assert response.get_json()["location"] == "HQ"


def test_get_event_not_found(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.get("/events/1")

    assert response.status_code == 404


def test_update_event_partial(client, mock_db, executed_sql):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [event_row(), event_row(name="Relaunch")]

    response = client.put("/events/1", json={"name": "Relaunch"})

    assert response.status_code == 200
    assert response.get_json()["name"] == "Relaunch"
    assert executed_sql()[-1].startswith("UPDATE events SET name = %s, updated_at = CURRENT_TIMESTAMP")


def test_update_event_end_before_stored_start(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = event_row()

    response = client.put("/events/1", json={"end_time": "2030-01-01T09:00"})

    assert response.status_code == 422
    assert "end_time" in response.get_json()["errors"]


def test_update_event_capacity_below_attendee_count(client, mock_db, executed_sql):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [event_row(max_capacity=5), {"attendee_count": 3}]

    response = client.put("/events/1", json={"max_capacity": 2})

    assert response.status_code == 422
    assert "max_capacity" in response.get_json()["errors"]
    assert not any(s.startswith("UPDATE") for s in executed_sql())


def test_update_event_not_found(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.put("/events/1", json={"name": "Relaunch"})

    assert response.status_code == 404


def test_update_event_null_field_rejected(client, mock_db):
    response = client.put("/events/1", json={"location": None})

    assert response.status_code == 422
    assert "location" in response.get_json()["errors"]


def test_delete_event(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"event_id": 1}, {"attendee_count": 0}]

    response = client.delete("/events/1")

    assert response.status_code == 200
    assert response.get_json()["message"] == "Event deleted successfully"


def test_delete_event_with_attendees_is_blocked(client, mock_db, executed_sql):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"event_id": 1}, {"attendee_count": 2}]

    response = client.delete("/events/1")

    assert response.status_code == 409
    assert not any(s.startswith("DELETE") for s in executed_sql())


def test_delete_event_foreign_key_race(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"event_id": 1}, {"attendee_count": 0}]

    def execute(sql, params=None):
        if sql.startswith("DELETE"):
            raise psycopg2.errors.ForeignKeyViolation("attendees_event_id_fkey")

    mock_cursor.execute.side_effect = execute

    response = client.delete("/events/1")

    assert response.status_code == 409


def test_delete_event_not_found(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.delete("/events/1")

    assert response.status_code == 404
