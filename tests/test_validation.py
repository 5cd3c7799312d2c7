from __future__ import annotations

import copy

from polyglottos.importer import BatchValidator, validate_json
from polyglottos.records import ImportBatch


def _validate(payload: dict):
    return BatchValidator().validate(ImportBatch.model_validate(payload))


def test_empty_batch_is_a_single_structural_issue() -> None:
    issues = _validate({"metadata": {"version": "1.0"}, "users": []})
    assert len(issues) == 1
    assert issues[0].recoverable is False
    assert "at least one of" in issues[0].message


def test_clean_batch_has_no_issues() -> None:
    issues = _validate(
        {
            "users": [{"id": "u1", "username": "ana", "email": "ana@example.com"}],
            "progress": [{"id": "p1", "userId": "u1", "questionsAnswered": 3, "correctAnswers": 2, "quizzesTaken": 1}],
            "settings": [{"userId": "u1", "theme": "dark"}],
        }
    )
    assert issues == []


def test_missing_identity_fields_are_blocking() -> None:
    issues = _validate(
        {
            "users": [{"username": "ana", "email": "ana@example.com"}],
            "progress": [{"id": "p1", "userId": "  ", "questionsAnswered": 0, "correctAnswers": 0, "quizzesTaken": 0}],
            "settings": [{"theme": "dark"}],
        }
    )
    assert {(issue.field, issue.recoverable) for issue in issues} == {
        ("users[0].id", False),
        ("progress[0].userId", False),
        ("settings[0].userId", False),
    }


def test_bad_email_is_recoverable() -> None:
    issues = _validate({"users": [{"id": "u1", "username": "ana", "email": "not-an-email"}]})
    assert len(issues) == 1
    assert issues[0].field == "users[0].email"
    assert issues[0].recoverable is True


def test_correct_answers_cannot_exceed_questions() -> None:
    issues = _validate(
        {"progress": [{"id": "p1", "userId": "u1", "questionsAnswered": 50, "correctAnswers": 90, "quizzesTaken": 1}]}
    )
    assert len(issues) == 1
    assert "cannot exceed" in issues[0].message
    assert issues[0].recoverable is True
    assert issues[0].field == "progress[0]"


def test_counters_must_be_non_negative_numbers() -> None:
    issues = _validate(
        {"progress": [{"id": "p1", "userId": "u1", "questionsAnswered": -1, "correctAnswers": "3", "quizzesTaken": True}]}
    )
    assert sorted(issue.field for issue in issues) == [
        "progress[0].correctAnswers",
        "progress[0].questionsAnswered",
        "progress[0].quizzesTaken",
    ]
    assert all(issue.recoverable for issue in issues)


def test_non_object_records_are_blocking() -> None:
    issues = _validate({"users": ["u1"], "settings": [{"userId": "u1"}]})
    assert [(issue.field, issue.recoverable) for issue in issues] == [("users[0]", False)]


def test_validation_never_mutates_input() -> None:
    payload = {"progress": [{"id": "p1", "userId": "u1", "questionsAnswered": 1, "correctAnswers": 5}]}
    batch = ImportBatch.model_validate(copy.deepcopy(payload))
    BatchValidator().validate(batch)
    assert batch.records("progress") == payload["progress"]


def test_validate_json_reports_parse_errors() -> None:
    report = validate_json("{not json")
    assert report.valid is False
    assert report.batch is None
    assert report.issues[0].recoverable is False
    assert report.issues[0].message.startswith("Invalid JSON")


def test_validate_json_rejects_non_object_documents() -> None:
    report = validate_json("[1, 2, 3]")
    assert report.valid is False
    assert report.issues[0].recoverable is False


def test_validate_json_returns_batch() -> None:
    report = validate_json('{"settings": [{"userId": "u1"}]}')
    assert report.valid is True
    assert report.batch.records("settings") == [{"userId": "u1"}]


def test_snake_case_records_are_accepted() -> None:
    issues = _validate(
        {
            "users": [{"id": "u1", "username": "ana", "email": "ana@example.com", "created_at": "2024-01-01T00:00:00Z"}],
            "progress": [
                {"id": "p1", "user_id": "u1", "questions_answered": 5, "correct_answers": 3, "quizzes_taken": 1}
            ],
            "settings": [{"user_id": "u1", "is_private": True}],
        }
    )
    assert issues == []


def test_snake_case_counters_are_checked() -> None:
    issues = _validate(
        {"progress": [{"id": "p1", "userId": "u1", "questions_answered": 50, "correct_answers": 90, "quizzes_taken": -2}]}
    )
    assert sorted((issue.field, issue.recoverable) for issue in issues) == [
        ("progress[0]", True),
        ("progress[0].quizzesTaken", True),
    ]


def test_snake_case_lookup_leaves_record_untouched() -> None:
    payload = {"progress": [{"id": "p1", "user_id": "u1", "questions_answered": 1, "correct_answers": 0, "quizzes_taken": 0}]}
    batch = ImportBatch.model_validate(copy.deepcopy(payload))
    BatchValidator().validate(batch)
    assert batch.records("progress") == payload["progress"]


def test_missing_counters_are_recoverable() -> None:
    issues = _validate({"progress": [{"id": "p1", "userId": "u1", "questionsAnswered": 4}]})
    assert sorted((issue.field, issue.recoverable) for issue in issues) == [
        ("progress[0].correctAnswers", True),
        ("progress[0].quizzesTaken", True),
    ]
    assert issues[0].message.endswith("must be a non-negative number")


def test_email_with_trailing_newline_is_invalid() -> None:
    issues = _validate({"users": [{"id": "u1", "username": "ana", "email": "ana@example.com\n"}]})
    assert [(issue.field, issue.recoverable) for issue in issues] == [("users[0].email", True)]
