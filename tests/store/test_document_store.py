from __future__ import annotations

import json
from pathlib import Path

import pytest

from hrprogression.errors import ConcurrentModificationError, NotFoundError, RequestValidationError, StoreError
from hrprogression.schemas import Candidate, Interviewer, RoundResult
from hrprogression.store import DocumentStore, JsonDirectoryStore, MemoryDocumentStore


@pytest.fixture(params=["memory", "json"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> DocumentStore:
    if request.param == "memory":
        return MemoryDocumentStore()
    return JsonDirectoryStore(tmp_path / "store")


def build_candidate(**kwargs) -> Candidate:
    defaults = {"candidate_id": "cand-1", "email": "c1@example.com"}
    defaults.update(kwargs)
    return Candidate(**defaults)


def build_result(completed_at: str, **kwargs) -> RoundResult:
    defaults = {
        "candidate_id": "cand-1",
        "domain_id": "backend",
        "domain_name": "Backend",
        "round_id": "be-1",
        "round_name": "Aptitude",
        "started_at": "2024-05-01T09:00:00Z",
        "completed_at": completed_at,
        "total_questions": 1,
        "correct_answers": 1,
        "percentage": 100.0,
        "passed": True,
    }
    defaults.update(kwargs)
    return RoundResult(**defaults)


def test_create_and_reload_candidate(store: DocumentStore):
    created = store.create_candidate(build_candidate(name="Cand One"))

    loaded = store.get_candidate("cand-1")
    assert created.revision == 1
    assert loaded.revision == 1
    assert loaded.name == "Cand One"
    with pytest.raises(RequestValidationError):
        store.create_candidate(build_candidate())


def test_stale_candidate_write_is_rejected(store: DocumentStore):
    store.create_candidate(build_candidate())
    first = store.get_candidate("cand-1")
    second = store.get_candidate("cand-1")

    first.name = "First writer"
    store.save_candidate(first)
    second.name = "Second writer"

    with pytest.raises(ConcurrentModificationError) as excinfo:
        store.save_candidate(second)

    assert excinfo.value.status_code == 409
    assert store.get_candidate("cand-1").name == "First writer"


def test_saving_unknown_candidate_with_revision_is_not_found(store: DocumentStore):
    with pytest.raises(NotFoundError):
        store.save_candidate(build_candidate(revision=3))
    with pytest.raises(NotFoundError):
        store.get_candidate("cand-1")


def test_document_ids_are_validated(store: DocumentStore):
    with pytest.raises(RequestValidationError):
        store.find_candidate("../etc/passwd")
    with pytest.raises(RequestValidationError):
        store.find_interviewer("")


def test_interviewers_with_candidate(store: DocumentStore):
    store.save_interviewer(
        Interviewer(
            interviewer_id="int-1",
            name="One",
            email="one@example.com",
            assigned_candidates=[
                {"candidate_id": "cand-1", "candidate_name": "C", "candidate_email": "c@example.com"}
            ],
        )
    )
    store.save_interviewer(Interviewer(interviewer_id="int-2", name="Two", email="two@example.com"))

    holders = store.interviewers_with_candidate("cand-1")

    assert [holder.interviewer_id for holder in holders] == ["int-1"]
    assert holders[0].active_interviews == 1
    assert len(store.list_interviewers()) == 2


def test_results_are_append_only_and_ordered(store: DocumentStore):
    late = store.add_result(build_result("2024-05-03T10:00:00Z"))
    early = store.add_result(build_result("2024-05-01T10:00:00Z"))
    store.add_result(build_result("2024-05-02T10:00:00Z", round_id="be-2"))

    assert [item.result_id for item in store.results_for("cand-1", "be-1")] == [early.result_id, late.result_id]
    assert len(store.results_for("cand-1")) == 3
    with pytest.raises(StoreError):
        store.add_result(late)


def test_json_store_layout(tmp_path: Path):
    store = JsonDirectoryStore(tmp_path)
    store.create_candidate(build_candidate())

    path = tmp_path / "candidates" / "cand-1.json"
    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8"))["revision"] == 1
    assert list((tmp_path / "candidates").glob("*.tmp")) == []


def test_json_store_reports_corrupt_documents(tmp_path: Path):
    store = JsonDirectoryStore(tmp_path)
    (tmp_path / "candidates").mkdir()
    (tmp_path / "candidates" / "cand-1.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        store.get_candidate("cand-1")


def test_write_failures_become_store_errors(tmp_path: Path):
    blocker = tmp_path / "blocked"
    blocker.write_text("", encoding="utf-8")
    store = JsonDirectoryStore(blocker)

    with pytest.raises(StoreError):
        store.save_interviewer(Interviewer(interviewer_id="int-1", name="One", email="one@example.com"))
