"""Qualification filter and daily review export.

Decides which analyzed postings make it onto the review list:

1. German required → excluded
2. ATS score below ``min_score`` → excluded
3. Domain determined and not in ``allowed_domains`` → excluded
4. Low confidence with a score below ``low_confidence_min_score`` → excluded

Survivors are ranked by ATS score, highest first; equal scores keep their
input order. This module does no I/O except ``write_review_file``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import NamedTuple

from jobsieve.config import QualificationCriteria
from jobsieve.models import ConfidenceLevel, JobDomain, JobPosting

logger = logging.getLogger(__name__)

REVIEW_INSTRUCTIONS = (
    "Review these jobs daily and apply to the ones that interest you. "
    "Mark as applied once done."
)


class RejectionReason(Enum):
    """Why a posting was left off the review list."""

    GERMAN_REQUIRED = "german_required"
    LOW_SCORE = "low_score"
    WRONG_DOMAIN = "wrong_domain"
    LOW_CONFIDENCE = "low_confidence"


class FilterResult(NamedTuple):
    """Result of filtering a single posting."""

    job: JobPosting
    passed: bool
    reason: RejectionReason | None = None


def check_job(job: JobPosting, criteria: QualificationCriteria) -> FilterResult:
    """Apply the exclusion rules to one posting, in order."""
    analysis = job.ai_analysis
    score = job.overall_score

    if analysis is not None and analysis.german_required:
        return FilterResult(job, False, RejectionReason.GERMAN_REQUIRED)

    if score < criteria.min_score:
        return FilterResult(job, False, RejectionReason.LOW_SCORE)

    if analysis is not None:
        domain = analysis.job_domain
        if domain != JobDomain.UNKNOWN and domain.value not in criteria.allowed_domains:
            return FilterResult(job, False, RejectionReason.WRONG_DOMAIN)

        if (analysis.confidence_level == ConfidenceLevel.LOW
                and score < criteria.low_confidence_min_score):
            return FilterResult(job, False, RejectionReason.LOW_CONFIDENCE)

    return FilterResult(job, True)


def qualify_jobs(
    jobs: list[JobPosting],
    criteria: QualificationCriteria | None = None,
) -> tuple[list[JobPosting], list[FilterResult]]:
    """Filter and rank postings for review.

    Returns:
        (qualified_jobs_ranked, rejected_results)
    """
    criteria = criteria or QualificationCriteria()
    passed: list[JobPosting] = []
    rejected: list[FilterResult] = []

    for job in jobs:
        result = check_job(job, criteria)
        if result.passed:
            passed.append(job)
        else:
            rejected.append(result)

    # sorted() is stable, so equal scores keep encounter order
    ranked = sorted(passed, key=lambda j: j.overall_score, reverse=True)
    return ranked, rejected


def get_rejection_summary(results: list[FilterResult]) -> dict[str, int]:
    """Count rejection results by reason."""
    summary: dict[str, int] = {}
    for result in results:
        if result.reason:
            key = result.reason.value
            summary[key] = summary.get(key, 0) + 1
    return summary


def review_entry(job: JobPosting) -> dict:
    """Flattened view of one qualified posting for the review file."""
    analysis = job.ai_analysis
    score = job.ats_score
    return {
        "jobTitle": job.title,
        "company": job.company,
        "companyLocation": job.location,
        "salaryRange": job.salary_range,
        "datePosted": job.posted_date,
        "platform": job.platform.value,
        "atsScore": score.overall_score if score else 0,
        "recommendation": score.recommendation if score else "",
        "matchedSkills": list(score.matched_skills) if score else [],
        "missingSkills": list(score.missing_skills) if score else [],
        "requiredSkills": list(analysis.required_skills) if analysis else [],
        "techStack": list(analysis.tech_stack) if analysis else [],
        "experienceYears": analysis.experience_years if analysis else "",
        "benefits": list(analysis.benefits) if analysis else [],
        "summary": analysis.summary if analysis else "",
        "jobDomain": analysis.job_domain.value if analysis else JobDomain.UNKNOWN.value,
        "descriptionQuality": analysis.description_quality.value if analysis else "incomplete",
        "confidenceLevel": analysis.confidence_level.value if analysis else ConfidenceLevel.LOW.value,
        "warningFlags": list(analysis.warning_flags) if analysis else [],
        "rawDescription": (analysis.raw_description if analysis else None) or job.description,
        "translatedDescription": (analysis.translated_description if analysis else None) or "",
        "applied": False,
    }


def write_review_file(
    jobs: list[JobPosting],
    path: str | Path,
    generated_at: datetime | None = None,
) -> Path:
    """Write the ranked review list to ``path``, replacing any previous file."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "generatedAt": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "totalQualified": len(jobs),
        "instructions": REVIEW_INSTRUCTIONS,
        "jobs": [review_entry(job) for job in jobs],
    }

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    logger.info("Wrote %d qualified jobs to %s", len(jobs), out_path)
    return out_path
