"""Storage module for analyzed job postings.

One JSON file per platform holds every posting that has been analyzed:

    {
      "lastUpdated": "<ISO 8601>",
      "totalJobs": <int>,
      "jobs": [StoredJob, ...]
    }

Postings are keyed by a content-derived identity (title, company,
location and absolute posted date), so the same listing scraped twice
maps onto the same record and the scraper can skip it before opening it.

The whole collection is rewritten on every mutation. Writes use the
atomic write pattern:
  1. Write to .tmp file
  2. fsync
  3. Rename to target (atomic on POSIX)

Before each write, a .bak backup is created. If the primary file is
corrupted, it's restored from .bak automatically; if both are unreadable
the store starts empty.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

from jobsieve.config import DEFAULT_KEY_SKILLS
from jobsieve.dates import normalize_posted_date
from jobsieve.models import JobPosting, Platform, StoredJob

logger = logging.getLogger(__name__)

_ID_DELIMITER = "|"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Identity ───────────────────────────────────────────────────────────────


def _normalize_field(value: str) -> str:
    return " ".join((value or "").split()).lower()


def compute_job_id(title: str, company: str, location: str, posted_on: date | str) -> str:
    """Return the dedup key for a posting.

    Title, company and location are trimmed, whitespace-collapsed and
    lowercased; the posted date must already be absolute. The description
    is deliberately not part of the key.
    """
    posted = posted_on.isoformat() if isinstance(posted_on, date) else str(posted_on)
    normalized = _ID_DELIMITER.join(
        [_normalize_field(title), _normalize_field(company), _normalize_field(location), posted]
    )
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


# ── Database ───────────────────────────────────────────────────────────────


class JobDatabase:
    """Analyzed-jobs store for one platform.

    All state lives in ``self._jobs`` (id → StoredJob); every public
    mutation persists the full collection before returning. A lock guards
    each read-modify-write so concurrent ``add_job`` calls on the same
    instance cannot drop each other's updates.
    """

    def __init__(
        self,
        db_path: str | Path,
        platform: Platform = Platform.XING,
        key_skills: Iterable[str] | None = None,
        clock: Clock | None = None,
    ):
        self.db_path = Path(db_path)
        self.platform = platform
        self.key_skills = [
            s.lower() for s in (key_skills if key_skills is not None else DEFAULT_KEY_SKILLS)
        ]
        self._clock = clock or _utcnow
        self._jobs: dict[str, StoredJob] = {}
        self._lock = threading.RLock()
        self._load()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def job_id_for(self, title: str, company: str, location: str, posted_text: str) -> str:
        """Identity for a posting whose date is still the displayed text."""
        posted_on = normalize_posted_date(posted_text, self._clock())
        return compute_job_id(title, company, location, posted_on)

    def is_job_analyzed(
        self, title: str, company: str, location: str, posted_text: str = ""
    ) -> bool:
        """Cache gate: has this posting been analyzed before?

        Cheap enough to call from the job list, before the posting is
        opened or anything is sent to the model.
        """
        return self.job_id_for(title, company, location, posted_text) in self._jobs

    def get_job(
        self, title: str, company: str, location: str, posted_text: str
    ) -> StoredJob | None:
        return self._jobs.get(self.job_id_for(title, company, location, posted_text))

    def get_all_jobs(self) -> list[StoredJob]:
        return list(self._jobs.values())

    def get_jobs_analyzed_today(self) -> list[StoredJob]:
        today = self._clock().date().isoformat()
        return [job for job in self._jobs.values() if job.analyzed_at.startswith(today)]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_job(self, posting: JobPosting) -> str:
        """Insert or overwrite the record for ``posting`` and persist.

        A second call with the same identity replaces the first record
        wholesale. Returns the identity.
        """
        now = self._clock()
        posted_on = normalize_posted_date(posting.posted_date, now)
        job_id = compute_job_id(posting.title, posting.company, posting.location, posted_on)

        stored = StoredJob(
            id=job_id,
            title=posting.title,
            company=posting.company,
            posted_date=posted_on.isoformat(),
            analyzed_at=now.isoformat(),
            job_details=posting,
            platform=posting.platform,
        )

        with self._lock:
            self._jobs[job_id] = stored
            self._save()
            total = len(self._jobs)

        logger.info("Saved %s job %r to database (total: %d)",
                    posting.platform.value, posting.title, total)
        return job_id

    def clear_old_jobs(self, days_to_keep: int = 30) -> int:
        """Remove records analyzed more than ``days_to_keep`` days ago.

        Writes only when something was removed. Returns the count removed.
        """
        cutoff = self._clock() - timedelta(days=days_to_keep)
        if cutoff.tzinfo is None:
            cutoff = cutoff.replace(tzinfo=timezone.utc)

        with self._lock:
            stale = []
            for job_id, job in self._jobs.items():
                analyzed = _parse_timestamp(job.analyzed_at)
                if analyzed is None:
                    logger.warning("Unparseable analyzedAt %r for job %s — keeping",
                                   job.analyzed_at, job_id)
                    continue
                if analyzed < cutoff:
                    stale.append(job_id)

            for job_id in stale:
                del self._jobs[job_id]

            if stale:
                self._save()

        if stale:
            logger.info("Removed %d jobs older than %d days", len(stale), days_to_keep)
        return len(stale)

    # ------------------------------------------------------------------
    # Predicates and derived views
    # ------------------------------------------------------------------

    @staticmethod
    def should_skip_job(posting: JobPosting) -> bool:
        """True when the analysis marks German as mandatory."""
        return posting.german_required

    def matched_key_skills(self, posting: JobPosting) -> list[str]:
        """Watch-list entries found in the posting's skills or tech stack."""
        if posting.ai_analysis is None:
            return []
        terms = [s.lower() for s in posting.ai_analysis.required_skills]
        terms += [t.lower() for t in posting.ai_analysis.tech_stack]
        return [key for key in self.key_skills if any(key in term for term in terms)]

    def is_important_job(self, posting: JobPosting) -> bool:
        return bool(self.matched_key_skills(posting))

    def get_important_jobs(self) -> list[StoredJob]:
        """Jobs without a German requirement that hit the key-skill watch-list."""
        return [
            job for job in self._jobs.values()
            if not self.should_skip_job(job.job_details) and self.is_important_job(job.job_details)
        ]

    def save_important_jobs(self, path: str | Path) -> Path:
        """Write the important subset to ``path``, replacing any previous file."""
        important = self.get_important_jobs()
        out_path = Path(path)
        data = _serialize(important, self._clock())
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write_json(out_path, data)
        except OSError:
            logger.error("Could not save important jobs to %s", out_path)
            return out_path
        logger.info("Saved %d important jobs to %s", len(important), out_path)
        return out_path

    def get_stats(self, qualified_min_score: int = 40) -> dict[str, int]:
        all_jobs = self.get_all_jobs()
        return {
            "total": len(all_jobs),
            "analyzed_today": len(self.get_jobs_analyzed_today()),
            "german_required": sum(1 for j in all_jobs if j.job_details.german_required),
            "qualified": sum(
                1 for j in all_jobs
                if not j.job_details.german_required
                and j.job_details.overall_score >= qualified_min_score
            ),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        raw = _safe_read_json(self.db_path, default={})
        jobs_raw = raw.get("jobs") if isinstance(raw, dict) else None

        if raw and not isinstance(jobs_raw, list):
            logger.error("Malformed database %s (no jobs list) — starting empty", self.db_path)
            jobs_raw = []

        for entry in jobs_raw or []:
            try:
                job = StoredJob.from_dict(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping unreadable job record in %s: %s", self.db_path, exc)
                continue
            self._jobs[job.id] = job

        if self.db_path.exists():
            logger.info("Loaded %d previously analyzed jobs from %s", len(self._jobs), self.db_path)
        else:
            logger.info("No existing database at %s — starting new one", self.db_path)

    def _save(self) -> None:
        data = _serialize(self._jobs.values(), self._clock())
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            _backup_and_write(self.db_path, data)
        except OSError as exc:
            logger.error("Error saving database %s: %s", self.db_path, exc)


# ── Internal Helpers ───────────────────────────────────────────────────────


def _serialize(jobs: Iterable[StoredJob], now: datetime) -> dict:
    job_dicts = [job.to_dict() for job in jobs]
    return {
        "lastUpdated": now.isoformat(),
        "totalJobs": len(job_dicts),
        "jobs": job_dicts,
    }


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _safe_read_json(path: Path, default: Any = None) -> Any:
    """Read a JSON file, restoring from .bak if corrupted.

    If the primary file can't be parsed, tries .bak. If both fail,
    returns the default value and logs an error.
    """
    if not path.exists():
        return default if default is not None else {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.warning("Failed to read %s: %s — trying backup", path, exc)

    bak_path = path.with_suffix(path.suffix + ".bak")
    if bak_path.exists():
        try:
            with open(bak_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            logger.info("Restored %s from backup", path)
            _atomic_write_json(path, data)
            return data
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logger.error("Backup %s also corrupted: %s", bak_path, exc)

    logger.error("Could not read %s or its backup — using default", path)
    return default if default is not None else {}


def _backup_and_write(path: Path, data: Any) -> None:
    """Create a .bak backup of the current file, then atomically write new data."""
    if path.exists():
        bak_path = path.with_suffix(path.suffix + ".bak")
        try:
            shutil.copy2(path, bak_path)
        except OSError as exc:
            logger.warning("Failed to create backup of %s: %s", path, exc)

    _atomic_write_json(path, data)


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON data atomically using temp file + rename."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        tmp_path.replace(path)
    except OSError as exc:
        logger.error("Failed to write %s: %s", path, exc)
        if tmp_path.exists():
            tmp_path.unlink()
        raise
