from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from assessment_service.api.dependencies import question_bank
from assessment_service.models.assessment import (
    MCQ,
    RESULTS_MANUAL,
    MCQAnswer,
    Question,
)
from tests.conftest import (
    FakeClock,
    auth,
    mcq,
    mint_token,
    msq,
    nat,
    options,
    seed_assessment,
)


def _start(client: TestClient, assessment_id, token: str):
    return client.post(f"/v1/assessments/{assessment_id}/attempts", headers=auth(token))


def _save(client: TestClient, attempt_id, question_id, answer: dict, token: str):
    return client.put(
        f"/v1/attempts/{attempt_id}/answers/{question_id}",
        json={"answer": answer},
        headers=auth(token),
    )


# ---- start / resume ----


def test_start_then_resume(client: TestClient, token: str) -> None:
    assessment = seed_assessment(duration_minutes=10)

    resp1 = _start(client, assessment.id, token)
    assert resp1.status_code == 201
    body1 = resp1.json()
    assert body1["resumed"] is False
    assert body1["attempt"]["status"] == "in_progress"
    assert body1["attempt"]["expires_at"] == body1["attempt"]["started_at"] + 600

    resp2 = _start(client, assessment.id, token)
    assert resp2.status_code == 200
    assert resp2.json()["resumed"] is True
    assert resp2.json()["attempt"]["id"] == body1["attempt"]["id"]


def test_start_unknown_assessment_returns_404(client: TestClient, token: str) -> None:
    assert _start(client, uuid4(), token).status_code == 404


def test_start_draft_assessment_returns_409(client: TestClient, token: str) -> None:
    assessment = seed_assessment(status="draft")
    resp = _start(client, assessment.id, token)
    assert resp.status_code == 409
    assert "not available" in resp.json()["detail"]


def test_start_beyond_max_attempts_returns_409(client: TestClient, token: str) -> None:
    assessment = seed_assessment(max_attempts=1)
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    resp = _start(client, assessment.id, token)
    assert resp.status_code == 409
    assert "maximum attempts" in resp.json()["detail"]


def test_start_requires_token(client: TestClient) -> None:
    assessment = seed_assessment()
    resp = client.post(f"/v1/assessments/{assessment.id}/attempts")
    assert resp.status_code == 401


def test_start_rejects_garbage_token(client: TestClient) -> None:
    assessment = seed_assessment()
    resp = _start(client, assessment.id, "not-a-jwt")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


# ---- paper ----


def test_paper_never_exposes_correct_answers(client: TestClient, token: str) -> None:
    q = mcq(correct="C")
    assessment = seed_assessment(questions=(q,), shuffle_options=True)
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    resp = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token))

    assert resp.status_code == 200
    body = resp.json()
    assert body["remaining_seconds"] is None
    question = body["questions"][0]
    assert question["id"] == str(q.id)
    assert sorted(o["id"] for o in question["options"]) == ["A", "B", "C", "D"]
    assert "correct_answer" not in question
    assert "explanation" not in question


def test_other_users_cannot_see_attempt(client: TestClient, token: str) -> None:
    assessment = seed_assessment()
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    intruder = mint_token(username="someone-else")

    assert client.get(f"/v1/attempts/{attempt_id}", headers=auth(intruder)).status_code == 404
    resp = client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(intruder))
    assert resp.status_code == 404


def test_unknown_attempt_returns_404(client: TestClient, token: str) -> None:
    assert client.get(f"/v1/attempts/{uuid4()}", headers=auth(token)).status_code == 404


# ---- autosave ----


def test_save_answers_of_each_type(client: TestClient, token: str) -> None:
    q1, q2, q3 = mcq(), msq({"A", "B"}), nat(2.5, tolerance=0.1)
    assessment = seed_assessment(questions=(q1, q2, q3))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    r1 = _save(client, attempt_id, q1.id, {"type": "MCQ", "option_id": "B"}, token)
    r2 = _save(
        client, attempt_id, q2.id, {"type": "MSQ", "option_ids": ["B", "A"]}, token
    )
    r3 = _save(client, attempt_id, q3.id, {"type": "NAT", "value": 2.45}, token)

    assert [r.status_code for r in (r1, r2, r3)] == [200, 200, 200]
    assert r2.json()["answer"] == {"type": "MSQ", "option_ids": ["A", "B"]}

    paper = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token)).json()
    saved = {a["question_id"]: a["answer"] for a in paper["answers"]}
    assert saved[str(q1.id)] == {"type": "MCQ", "option_id": "B"}
    assert saved[str(q3.id)] == {"type": "NAT", "value": 2.45}


def test_save_overwrites_previous_answer(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    _save(client, attempt_id, q.id, {"type": "MCQ", "option_id": "B"}, token)
    _save(client, attempt_id, q.id, {"type": "MCQ", "option_id": "D"}, token)

    paper = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token)).json()
    assert [a["answer"]["option_id"] for a in paper["answers"]] == ["D"]


def test_save_unknown_option_returns_422(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    resp = _save(client, attempt_id, q.id, {"type": "MCQ", "option_id": "Z"}, token)
    assert resp.status_code == 422
    assert "unknown option" in resp.json()["detail"]


def test_save_wrong_answer_type_returns_422(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    resp = _save(client, attempt_id, q.id, {"type": "NAT", "value": 1}, token)
    assert resp.status_code == 422


def test_save_malformed_body_returns_422(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    resp = _save(client, attempt_id, q.id, {"type": "ESSAY", "text": "hi"}, token)
    assert resp.status_code == 422


def test_save_unknown_question_returns_404(client: TestClient, token: str) -> None:
    assessment = seed_assessment()
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    resp = _save(client, attempt_id, uuid4(), {"type": "MCQ", "option_id": "A"}, token)
    assert resp.status_code == 404


def test_save_after_submit_returns_409(client: TestClient, token: str) -> None:
    q = mcq()
    assessment = seed_assessment(questions=(q,))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    resp = _save(client, attempt_id, q.id, {"type": "MCQ", "option_id": "A"}, token)
    assert resp.status_code == 409


def test_save_after_deadline_returns_410_and_submits(
    client: TestClient, clock: FakeClock, token: str
) -> None:
    q1, q2 = mcq(), mcq()
    assessment = seed_assessment(questions=(q1, q2), duration_minutes=10)
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    _save(client, attempt_id, q1.id, {"type": "MCQ", "option_id": "A"}, token)

    clock.advance(10 * 60)
    resp = _save(client, attempt_id, q2.id, {"type": "MCQ", "option_id": "A"}, token)
    assert resp.status_code == 410

    paper = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token)).json()
    assert paper["attempt"]["status"] == "submitted"
    assert paper["attempt"]["timed_out"] is True
    assert paper["remaining_seconds"] == 0

    result = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token)).json()
    assert result["correct_count"] == 1
    assert result["skipped_count"] == 1


# ---- submit / result ----


def test_submit_returns_result_and_is_idempotent(
    client: TestClient, token: str
) -> None:
    q1, q2 = mcq(), mcq(correct="B")
    assessment = seed_assessment(
        questions=(q1, q2), negative_marking_percent=50, passing_marks=1
    )
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    _save(client, attempt_id, q1.id, {"type": "MCQ", "option_id": "A"}, token)
    _save(client, attempt_id, q2.id, {"type": "MCQ", "option_id": "A"}, token)

    resp1 = client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))
    resp2 = client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    assert resp1.status_code == 200
    assert resp1.json() == resp2.json()
    result = resp1.json()["result"]
    assert result["total_score"] == 0.5
    assert result["max_score"] == 2
    assert result["percentage"] == 25.0
    assert result["passed"] is False
    assert resp1.json()["attempt"]["status"] == "submitted"

    fetched = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))
    assert fetched.status_code == 200
    body = fetched.json()
    assert len(body.pop("review")) == 2
    assert body == result


def test_result_before_submit_returns_409(client: TestClient, token: str) -> None:
    assessment = seed_assessment()
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    resp = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))
    assert resp.status_code == 409


def test_unscorable_submission_returns_500_and_stays_open(
    client: TestClient, token: str
) -> None:
    assessment = seed_assessment(questions=(mcq(correct="Z"),))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    resp = client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    assert resp.status_code == 500
    assert resp.json()["detail"] == "attempt could not be scored"
    paper = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token)).json()
    assert paper["attempt"]["status"] == "in_progress"


def test_manual_results_are_held_until_closed(
    client: TestClient, token: str, instructor_token: str
) -> None:
    assessment = seed_assessment(show_result_after=RESULTS_MANUAL)
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]

    submitted = client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))
    assert submitted.status_code == 200
    assert submitted.json()["result"] is None
    assert submitted.json()["attempt"]["status"] == "submitted"

    held = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))
    assert held.status_code == 403

    staff = client.get(
        f"/v1/attempts/{attempt_id}/result", headers=auth(instructor_token)
    )
    assert staff.status_code == 200

    question_bank.set_status(assessment.id, "closed")
    released = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))
    assert released.status_code == 200
    assert released.json()["attempt_id"] == attempt_id


def test_learners_cannot_read_each_others_results(
    client: TestClient, token: str
) -> None:
    assessment = seed_assessment()
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    other = mint_token(username="another-learner")
    resp = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(other))
    assert resp.status_code == 404


def test_result_reviews_each_question_with_its_answer_key(
    client: TestClient, token: str
) -> None:
    q1 = Question.new(
        type=MCQ,
        text="Capital of France?",
        correct_answer=MCQAnswer(option_id="B"),
        options=options("A", "B", "C"),
        explanation="Paris has been the capital since 987.",
    )
    q2 = nat(3.14, tolerance=0.01)
    assessment = seed_assessment(questions=(q1, q2))
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    _save(client, attempt_id, q1.id, {"type": "MCQ", "option_id": "A"}, token)

    paper = client.get(f"/v1/attempts/{attempt_id}", headers=auth(token)).json()
    assert "review" not in paper
    assert all("correct_answer" not in q for q in paper["questions"])

    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))
    resp = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))

    assert resp.status_code == 200
    first, second = resp.json()["review"]
    assert first["question_id"] == str(q1.id)
    assert first["text"] == "Capital of France?"
    assert first["answer"] == {"type": "MCQ", "option_id": "A"}
    assert first["correct_answer"] == {"type": "MCQ", "option_id": "B"}
    assert first["explanation"] == "Paris has been the capital since 987."
    assert first["status"] == "wrong"
    assert second["answer"] is None
    assert second["correct_answer"] == {"type": "NAT", "value": 3.14, "tolerance": 0.01}
    assert second["explanation"] is None
    assert second["status"] == "skipped"


def test_held_result_exposes_no_answer_key(client: TestClient, token: str) -> None:
    assessment = seed_assessment(show_result_after=RESULTS_MANUAL)
    attempt_id = _start(client, assessment.id, token).json()["attempt"]["id"]
    client.post(f"/v1/attempts/{attempt_id}/submit", headers=auth(token))

    resp = client.get(f"/v1/attempts/{attempt_id}/result", headers=auth(token))

    assert resp.status_code == 403
    assert "review" not in resp.json()
