from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.stockdesk.core.db_timing import add_query_time, is_query_timer_active, start_query_timer, stop_query_timer
from app.stockdesk.middleware.observability import build_request_log_payload


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/products",
        "headers": [],
        "route": SimpleNamespace(path="/api/products"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.tenant_id = "tenant-1"
    request.state.user_id = "user-1"
    request.state.error_code = None
    response = Response(status_code=200)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        db_time_ms=4.5678,
    )

    assert payload["trace_id"] == "trace-1"
    assert payload["tenant_id"] == "tenant-1"
    assert payload["user_id"] == "user-1"
    assert payload["route"] == "/api/products"
    assert payload["method"] == "GET"
    assert payload["status_code"] == 200
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57


def test_query_timer_accumulates_until_stopped():
    assert not is_query_timer_active()
    token = start_query_timer()
    add_query_time(1.5)
    add_query_time(2.0)
    assert is_query_timer_active()
    assert stop_query_timer(token) == 3.5
    assert not is_query_timer_active()
    add_query_time(10.0)
