"""Prometheus counters are process-global and never reset, so every
assertion here is on the delta around the action under test."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth, mcq, seed_assessment


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_attempt_routes_are_labelled_by_template(
    client: TestClient, token: str
) -> None:
    labels = {
        "method": "GET",
        "endpoint": "/v1/attempts/{attempt_id}",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(f"/v1/attempts/{uuid4()}", headers=auth(token))
    client.get(f"/v1/attempts/{uuid4()}", headers=auth(token))
    assert _get_sample("http_requests_total", labels) - before == 2


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "attempt_submissions_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_attempt_lifecycle_counters(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    started = {"resumed": "false"}
    resumed = {"resumed": "true"}
    saved = {"question_type": "MCQ"}
    manual = {"trigger": "manual"}
    before = [
        _get_sample("attempts_started_total", started),
        _get_sample("attempts_started_total", resumed),
        _get_sample("answers_saved_total", saved),
        _get_sample("attempt_submissions_total", manual),
    ]

    url = f"/v1/assessments/{assessment.id}/attempts"
    attempt_id = client.post(url, headers=auth(token)).json()["attempt"]["id"]
    client.post(url, headers=auth(token))
    client.put(
        f"/v1/attempts/{attempt_id}/answers/{q.id}",
        json={"answer": {"type": "MCQ", "option_id": "A"}},
        headers=auth(token),
    )
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    after = [
        _get_sample("attempts_started_total", started),
        _get_sample("attempts_started_total", resumed),
        _get_sample("answers_saved_total", saved),
        _get_sample("attempt_submissions_total", manual),
    ]
    assert [a - b for a, b in zip(after, before)] == [1, 1, 1, 1]
