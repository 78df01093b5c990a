from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tableflow.api.main import app


@pytest.fixture
def client(engine) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _place(client: TestClient, table_number: int = 3, streams: tuple[str, ...] = ("food",)) -> dict:
    response = client.post(
        "/v1/orders",
        json={
            "tableNumber": table_number,
            "lines": [
                {"name": f"{stream} item", "quantity": 1, "unitPriceCents": 500, "stream": stream}
                for stream in streams
            ],
        },
        headers={"X-Actor-Role": "customer"},
    )
    assert response.status_code == 201
    return response.json()


def _ticket(order: dict, stream: str) -> str:
    return next(ticket["ticketId"] for ticket in order["tickets"] if ticket["stream"] == stream)


def _advance(client: TestClient, ticket_id: str, *statuses: str) -> None:
    for status in statuses:
        response = client.post(f"/v1/tickets/{ticket_id}/status", json={"status": status})
        assert response.status_code == 200
        assert response.json()["status"] == status


def test_place_and_fetch_order(client: TestClient) -> None:
    order = _place(client, streams=("food", "drinks"))

    assert order["tableNumber"] == 3
    assert order["closedAt"] is None
    assert {ticket["stream"] for ticket in order["tickets"]} == {"food", "drinks"}

    fetched = client.get(f"/v1/orders/{order['orderCode'].lower()}")
    assert fetched.status_code == 200
    assert fetched.json()["orderCode"] == order["orderCode"]

    queue = client.get("/v1/stations/drinks/queue")
    assert queue.status_code == 200
    assert [ticket["ticketId"] for ticket in queue.json()["tickets"]] == [_ticket(order, "drinks")]


def test_invalid_placement_uses_error_envelope(client: TestClient) -> None:
    response = client.post("/v1/orders", json={"tableNumber": 0, "lines": []})

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "INVALID_REQUEST"
    assert body["requestId"] == response.headers["X-Request-Id"]


def test_unknown_order_is_404(client: TestClient) -> None:
    response = client.get("/v1/orders/NOPE22", headers={"X-Request-Id": "req-404"})

    assert response.status_code == 404
    assert response.json() == {
        "error": {"code": "ORDER_NOT_FOUND", "message": "order NOPE22 not found", "details": {}},
        "requestId": "req-404",
    }


def test_transition_and_issue_errors_map_to_codes(client: TestClient) -> None:
    order = _place(client)
    ticket_id = _ticket(order, "food")
    _advance(client, ticket_id, "preparing")

    too_early = client.post(
        f"/v1/orders/{order['orderCode']}/issues",
        json={"ticketId": ticket_id, "type": "cold"},
    )
    assert too_early.status_code == 400
    assert too_early.json()["error"]["code"] == "ISSUE_TOO_EARLY"

    skipped = client.post(f"/v1/tickets/{ticket_id}/status", json={"status": "delivered"})
    assert skipped.status_code == 409
    assert skipped.json()["error"]["code"] == "INVALID_TRANSITION"
    assert skipped.json()["error"]["details"] == {
        "entity": "ticket",
        "from": "preparing",
        "to": "delivered",
    }

    missing = client.post("/v1/tickets/tkt_missing/status", json={"status": "ready"})
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "TICKET_NOT_FOUND"


def test_issue_fix_and_close_over_http(client: TestClient) -> None:
    order = _place(client)
    code = order["orderCode"]
    ticket_id = _ticket(order, "food")
    _advance(client, ticket_id, "preparing", "ready", "delivered")

    created = client.post(
        f"/v1/orders/{code}/issues",
        json={"ticketId": ticket_id, "type": "cold", "description": "soup was cold"},
    )
    assert created.status_code == 201
    assert created.json()["status"] == "open"

    runner_rows = client.get("/v1/runner/queue").json()["rows"]
    assert [(row["kind"], row["issueType"]) for row in runner_rows] == [("issue", "cold")]

    ack = client.post(f"/v1/runner/orders/{code}/acknowledge", json={"ticketId": ticket_id})
    assert ack.status_code == 200
    assert ack.json()["count"] == 1

    confirm = client.post(f"/v1/orders/{code}/confirm-delivery")
    assert confirm.status_code == 200
    assert confirm.json()["closeBlockers"] == ["UNRESOLVED_ISSUES"]

    fixed = client.post(f"/v1/orders/{code}/confirm-fix", json={"ticketId": ticket_id})
    assert fixed.status_code == 200
    assert fixed.json()["resolutionRequired"] is False
    assert fixed.json()["closedAt"] is not None

    closed = client.post(f"/v1/orders/{code}/issues", json={"type": "other"})
    assert closed.status_code == 409
    assert closed.json()["error"]["code"] == "ORDER_CLOSED"


def test_admin_views(client: TestClient) -> None:
    flagged = _place(client, table_number=2)
    _place(client, table_number=5)
    _place(client, table_number=5, streams=("drinks",))
    ticket_id = _ticket(flagged, "food")
    _advance(client, ticket_id, "preparing", "ready", "delivered")
    client.post(f"/v1/runner/orders/{flagged['orderCode']}/acknowledge")

    grid = client.get("/v1/admin/tables", params={"lookbackMins": 30})
    assert grid.status_code == 200
    tables = {table["tableNumber"]: table for table in grid.json()["tables"]}
    assert len(tables) == 10
    assert (tables[1]["color"], tables[1]["label"]) == ("white", "No orders")
    assert tables[2]["color"] == "red"
    assert tables[5]["color"] == "purple"
    assert tables[5]["lookbackMins"] == 30

    single = client.get("/v1/admin/tables/5")
    assert single.status_code == 200
    assert single.json()["activeCount"] == 2

    issues = client.get("/v1/admin/issues", params={"status": "runner_ack"})
    assert issues.status_code == 200
    assert [issue["orderCode"] for issue in issues.json()["issues"]] == [flagged["orderCode"]]

    resolved = client.post(
        f"/v1/admin/orders/{flagged['orderCode']}/resolve",
        json={"note": "comped dessert"},
    )
    assert resolved.status_code == 200
    assert resolved.json()["count"] == 1
    assert client.get("/v1/admin/tables/2").json()["color"] == "orange"


def test_admin_input_errors(client: TestClient) -> None:
    bad_filter = client.get("/v1/admin/issues", params={"status": "pending"})
    assert bad_filter.status_code == 400
    assert bad_filter.json()["error"]["code"] == "INVALID_ISSUE_FILTER"

    bad_limit = client.get("/v1/admin/issues", params={"limit": 0})
    assert bad_limit.status_code == 400
    assert bad_limit.json()["error"]["code"] == "INVALID_ISSUE_FILTER"

    bad_table = client.get("/v1/admin/tables/0")
    assert bad_table.status_code == 400
    assert bad_table.json()["error"]["code"] == "INVALID_REQUEST"


def test_websocket_rejects_unknown_topic(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?topic=kitchen"):
            pass

    assert exc_info.value.code == 1008
