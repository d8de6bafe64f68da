"""Tests for the analyzed-jobs store.

Tests cover:
- Identity computation (normalization, determinism)
- Cache gate, upsert and lookup
- Round-trip through the JSON file
- Retention pruning
- Recovery from corrupted files
- Important-jobs watch-list and export
"""

import json
import threading
from datetime import date, datetime, timedelta, timezone
from unittest import mock

import pytest

from jobsieve.models import AIJobAnalysis, ATSScore, JobPosting, Platform
from jobsieve.storage import JobDatabase, compute_job_id

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Settable clock for the database."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "xing-analyzed-jobs.json"


@pytest.fixture
def db(db_path, clock) -> JobDatabase:
    return JobDatabase(db_path, clock=clock)


def make_posting(
    title="Lead QA Engineer",
    company="Acme GmbH",
    location="Berlin",
    posted_date="2 days ago",
    skills=None,
    tech=None,
    german_required=False,
    score=None,
) -> JobPosting:
    analysis = AIJobAnalysis(
        required_skills=skills or [],
        tech_stack=tech or [],
        german_required=german_required,
    )
    ats = None
    if score is not None:
        ats = ATSScore(
            overall_score=score, skills_match=score, tech_stack_match=score,
            experience_match=True, language_match=True,
        )
    return JobPosting(
        title=title,
        company=company,
        location=location,
        posted_date=posted_date,
        description="Full description of the role.",
        ai_analysis=analysis,
        ats_score=ats,
    )


# ── Identity ────────────────────────────────────────────────────────────────


class TestComputeJobId:
    """Tests for compute_job_id."""

    def test_deterministic(self):
        a = compute_job_id("QA Lead", "Acme", "Berlin", date(2024, 1, 8))
        b = compute_job_id("QA Lead", "Acme", "Berlin", date(2024, 1, 8))
        assert a == b

    def test_case_and_whitespace_are_normalized(self):
        a = compute_job_id("QA Lead", "Acme", "Berlin", date(2024, 1, 8))
        b = compute_job_id("  qa   LEAD ", "ACME", "berlin ", "2024-01-08")
        assert a == b

    @pytest.mark.parametrize("field", ["title", "company", "location", "date"])
    def test_differing_field_changes_id(self, field):
        base = {"title": "QA Lead", "company": "Acme", "location": "Berlin",
                "date": date(2024, 1, 8)}
        changed = dict(base)
        changed[field] = date(2024, 1, 9) if field == "date" else base[field] + " X"
        a = compute_job_id(base["title"], base["company"], base["location"], base["date"])
        b = compute_job_id(changed["title"], changed["company"], changed["location"], changed["date"])
        assert a != b

    def test_fixed_width_hex(self):
        job_id = compute_job_id("QA Lead", "Acme", "Berlin", date(2024, 1, 8))
        assert len(job_id) == 64
        int(job_id, 16)


# ── Cache gate and upsert ───────────────────────────────────────────────────


class TestAddAndLookup:
    """Tests for add_job, is_job_analyzed and get_job."""

    def test_empty_database(self, db, db_path):
        assert len(db) == 0
        assert not db_path.exists()
        assert db.get_all_jobs() == []

    def test_add_then_is_analyzed(self, db):
        job_id = db.add_job(make_posting())
        assert job_id in db
        assert db.is_job_analyzed("Lead QA Engineer", "Acme GmbH", "Berlin", "2 days ago")

    def test_different_date_phrasing_same_identity(self, db, clock):
        db.add_job(make_posting(posted_date="2 days ago"))
        assert db.is_job_analyzed("lead qa engineer", "ACME GMBH", "berlin", "vor 2 Tagen")

        # One day later the same posting shows "3 days ago"
        clock.now = NOW + timedelta(days=1)
        assert db.is_job_analyzed("Lead QA Engineer", "Acme GmbH", "Berlin", "3 days ago")

    def test_unknown_posting_not_analyzed(self, db):
        db.add_job(make_posting())
        assert not db.is_job_analyzed("Other Role", "Acme GmbH", "Berlin", "2 days ago")

    def test_add_is_idempotent_upsert(self, db):
        first = db.add_job(make_posting(skills=["Python"]))
        second = db.add_job(make_posting(skills=["Java"]))
        assert first == second
        assert len(db) == 1
        stored = db.get_job("Lead QA Engineer", "Acme GmbH", "Berlin", "2 days ago")
        assert stored.job_details.ai_analysis.required_skills == ["Java"]

    def test_stored_record_fields(self, db):
        job_id = db.add_job(make_posting())
        stored = db.get_all_jobs()[0]
        assert stored.id == job_id
        assert stored.posted_date == "2024-01-08"
        assert stored.analyzed_at == NOW.isoformat()
        assert stored.platform == Platform.XING

    def test_add_persists_before_returning(self, db, db_path):
        db.add_job(make_posting())
        data = json.loads(db_path.read_text())
        assert data["totalJobs"] == 1
        assert data["lastUpdated"] == NOW.isoformat()
        assert data["jobs"][0]["postedDate"] == "2024-01-08"

    def test_get_job_missing(self, db):
        assert db.get_job("Nope", "Nobody", "Nowhere", "today") is None

    def test_jobs_analyzed_today(self, db, clock):
        clock.now = NOW - timedelta(days=1)
        db.add_job(make_posting(title="Old Role"))
        clock.now = NOW
        db.add_job(make_posting(title="New Role"))
        titles = [j.title for j in db.get_jobs_analyzed_today()]
        assert titles == ["New Role"]


# ── Round-trip ──────────────────────────────────────────────────────────────


class TestPersistence:
    """Tests for loading and saving the JSON file."""

    def test_round_trip(self, db, db_path, clock):
        db.add_job(make_posting(title="A", skills=["Python"], score=80))
        db.add_job(make_posting(title="B", tech=["Docker"], german_required=True))

        reloaded = JobDatabase(db_path, clock=clock)
        assert {j.id for j in reloaded.get_all_jobs()} == {j.id for j in db.get_all_jobs()}
        for original in db.get_all_jobs():
            again = next(j for j in reloaded.get_all_jobs() if j.id == original.id)
            assert again.to_dict() == original.to_dict()

    def test_corrupted_file_without_backup_starts_empty(self, db_path, clock):
        db_path.parent.mkdir(parents=True)
        db_path.write_text("{not json")
        db = JobDatabase(db_path, clock=clock)
        assert len(db) == 0

    def test_corrupted_file_restored_from_backup(self, db, db_path, clock):
        db.add_job(make_posting(title="A"))
        db.add_job(make_posting(title="B"))  # backup now holds A only
        db_path.write_text("{not json")

        restored = JobDatabase(db_path, clock=clock)
        assert [j.title for j in restored.get_all_jobs()] == ["A"]

    def test_malformed_records_are_skipped(self, db_path, clock):
        db_path.parent.mkdir(parents=True)
        good = {
            "id": "abc", "title": "A", "company": "C", "postedDate": "2024-01-08",
            "analyzedAt": NOW.isoformat(), "platform": "xing",
            "jobDetails": {"jobTitle": "A", "company": "C"},
        }
        db_path.write_text(json.dumps({"jobs": [good, {"title": "missing id"}]}))
        db = JobDatabase(db_path, clock=clock)
        assert len(db) == 1
        assert "abc" in db

    def test_write_failure_is_logged_not_raised(self, db, caplog):
        with mock.patch("jobsieve.storage._backup_and_write", side_effect=OSError("disk full")):
            job_id = db.add_job(make_posting())
        assert job_id in db
        assert "Error saving database" in caplog.text


    def test_concurrent_adds_are_all_persisted(self, db, db_path, clock):
        count = 20
        barrier = threading.Barrier(count)

        def add(n):
            barrier.wait()
            db.add_job(make_posting(title=f"Role {n}"))

        threads = [threading.Thread(target=add, args=(n,)) for n in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(db) == count
        reloaded = JobDatabase(db_path, clock=clock)
        assert len(reloaded) == count
        assert json.loads(db_path.read_text())["totalJobs"] == count


# ── Retention ───────────────────────────────────────────────────────────────


class TestClearOldJobs:
    """Tests for clear_old_jobs."""

    def test_removes_only_stale_records(self, db, clock):
        clock.now = NOW - timedelta(days=40)
        db.add_job(make_posting(title="Stale"))
        clock.now = NOW
        db.add_job(make_posting(title="Fresh"))

        assert db.clear_old_jobs(30) == 1
        assert [j.title for j in db.get_all_jobs()] == ["Fresh"]

    def test_second_call_removes_nothing_and_does_not_write(self, db, clock):
        clock.now = NOW - timedelta(days=40)
        db.add_job(make_posting(title="Stale"))
        clock.now = NOW
        db.add_job(make_posting(title="Fresh"))
        db.clear_old_jobs(30)

        with mock.patch.object(db, "_save") as save:
            assert db.clear_old_jobs(30) == 0
            save.assert_not_called()

    def test_naive_clock(self, db_path):
        clock = Clock(datetime(2024, 1, 10, 12, 0) - timedelta(days=40))
        db = JobDatabase(db_path, clock=clock)
        db.add_job(make_posting(title="Stale"))
        clock.now = datetime(2024, 1, 10, 12, 0)
        db.add_job(make_posting(title="Fresh"))

        assert db.clear_old_jobs(30) == 1
        assert [j.title for j in db.get_all_jobs()] == ["Fresh"]

    def test_pruning_is_persisted(self, db, db_path, clock):
        clock.now = NOW - timedelta(days=40)
        db.add_job(make_posting(title="Stale"))
        clock.now = NOW
        db.clear_old_jobs(30)
        assert json.loads(db_path.read_text())["totalJobs"] == 0


# ── Predicates and important jobs ───────────────────────────────────────────


class TestImportantJobs:
    """Tests for should_skip_job, is_important_job and the export."""

    def test_should_skip_when_german_required(self, db):
        assert db.should_skip_job(make_posting(german_required=True))
        assert not db.should_skip_job(make_posting())
        assert not db.should_skip_job(JobPosting(title="T", company="C"))

    def test_important_on_substring_match(self, db):
        assert db.is_important_job(make_posting(skills=["Python scripting"]))
        assert db.is_important_job(make_posting(tech=["TypeScript"]))
        assert not db.is_important_job(make_posting(skills=["Java"], tech=["Docker"]))
        assert not db.is_important_job(JobPosting(title="T", company="C"))

    def test_custom_watch_list(self, db_path, clock):
        db = JobDatabase(db_path, key_skills=["Kotlin"], clock=clock)
        assert db.is_important_job(make_posting(tech=["kotlin multiplatform"]))
        assert not db.is_important_job(make_posting(tech=["Python"]))

    def test_get_important_jobs_excludes_german(self, db):
        db.add_job(make_posting(title="A", skills=["Python"]))
        db.add_job(make_posting(title="B", skills=["Python"], german_required=True))
        db.add_job(make_posting(title="C", skills=["Java"]))
        assert [j.title for j in db.get_important_jobs()] == ["A"]

    def test_save_important_jobs_replaces_file(self, db, tmp_path):
        out = tmp_path / "important.json"
        out.write_text(json.dumps({"jobs": ["stale"] * 5}))
        db.add_job(make_posting(title="A", tech=["Playwright"]))

        db.save_important_jobs(out)
        data = json.loads(out.read_text())
        assert data["totalJobs"] == 1
        assert data["jobs"][0]["title"] == "A"
        assert data["lastUpdated"] == NOW.isoformat()

    def test_stats(self, db):
        db.add_job(make_posting(title="A", score=80))
        db.add_job(make_posting(title="B", score=20))
        db.add_job(make_posting(title="C", german_required=True, score=0))
        stats = db.get_stats(qualified_min_score=40)
        assert stats == {"total": 3, "analyzed_today": 3, "german_required": 1, "qualified": 1}
