"""Pipeline orchestrator — drives postings through analysis and review.

For each raw posting handed over by the scraper, strictly one at a time:
  1. Cache gate: if the store already has it, reuse the stored result
  2. Clean the description and decide whether it is German
  3. Translate (if German) and extract the structured analysis
  4. Score against the resume profile
  5. Persist to the store

After the batch, postings are qualified and ranked, and the review list
and important-jobs export are rewritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from jobsieve.analyzer import JobAnalyzer
from jobsieve.config import PipelineConfig
from jobsieve.description import (
    assess_description_quality,
    clean_description,
    detect_german,
    extract_languages,
)
from jobsieve.models import DescriptionQuality, JobPosting, Platform
from jobsieve.qualify import get_rejection_summary, qualify_jobs, write_review_file
from jobsieve.scorer import ResumeAnalyzer
from jobsieve.storage import JobDatabase

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """What a pipeline run produced."""

    jobs: list[JobPosting] = field(default_factory=list)
    qualified: list[JobPosting] = field(default_factory=list)
    rejections: dict[str, int] = field(default_factory=dict)
    new_count: int = 0
    cached_count: int = 0
    failed_count: int = 0
    review_path: Path | None = None


class JobPipeline:
    """Runs postings from one platform through the analysis pipeline."""

    def __init__(
        self,
        config: PipelineConfig,
        database: JobDatabase,
        analyzer: JobAnalyzer,
        resume_analyzer: ResumeAnalyzer,
        platform: Platform = Platform.XING,
    ):
        self.config = config
        self.database = database
        self.analyzer = analyzer
        self.resume_analyzer = resume_analyzer
        self.platform = platform

    # ------------------------------------------------------------------
    # Single posting
    # ------------------------------------------------------------------

    def is_cached(self, posting: JobPosting) -> bool:
        return self.database.is_job_analyzed(
            posting.title, posting.company, posting.location, posting.posted_date
        )

    def process(self, posting: JobPosting) -> tuple[JobPosting, bool]:
        """Analyze, score and store one posting.

        Returns (posting, was_cached). A cached posting from the same
        platform is returned from the store without any model call.
        """
        posting.platform = self.platform
        cached = self.database.get_job(
            posting.title, posting.company, posting.location, posting.posted_date
        )
        if cached is not None and cached.platform == self.platform:
            logger.info("Already in database: %r at %s (%s)",
                        posting.title, posting.company, posting.location)
            return cached.job_details, True

        logger.info("New job: %r at %s (%s)", posting.title, posting.company, posting.location)
        analysis_cfg = self.config.analysis

        posting.description = clean_description(
            posting.description, analysis_cfg.max_description_chars
        )
        posting.is_german = detect_german(
            posting.description, analysis_cfg.german_detection_threshold
        )
        posting.languages = extract_languages(posting.description)

        if len(posting.description) < analysis_cfg.min_description_chars:
            logger.warning("Description for %r too short (%d chars) — not analyzed",
                           posting.title, len(posting.description))
            return posting, False

        logger.info("Description language: %s", "German" if posting.is_german else "English")
        analysis = self.analyzer.analyze_job(posting.description, posting.is_german)

        if not analysis.analysis_failed:
            quality = assess_description_quality(posting.description)
            if quality == DescriptionQuality.GENERIC and "generic_description" not in analysis.warning_flags:
                analysis.warning_flags.append("generic_description")
        posting.ai_analysis = analysis

        if analysis.german_required:
            logger.info("German language is mandatory for %r", posting.title)

        posting.ats_score = self.resume_analyzer.calculate_ats_score(
            analysis.required_skills,
            analysis.tech_stack,
            analysis.experience_years,
            analysis.language_requirements,
            analysis.german_required,
        )
        logger.info("ATS score for %r: %d%% (%s)", posting.title,
                    posting.ats_score.overall_score, posting.ats_score.recommendation)

        self.database.add_job(posting)
        if self.database.is_important_job(posting):
            logger.info("Important job %r — key skills: %s", posting.title,
                        ", ".join(self.database.matched_key_skills(posting)))
        return posting, False

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def run(self, postings: list[JobPosting]) -> RunResult:
        """Process a batch sequentially, then qualify and export.

        A failure on one posting is logged and the run moves on.
        """
        result = RunResult()
        seen_ids: set[str] = set()
        logger.info("Starting %s run with %d postings", self.platform.value, len(postings))

        for i, posting in enumerate(postings, 1):
            logger.info("Posting %d of %d", i, len(postings))
            job_id = self.database.job_id_for(
                posting.title, posting.company, posting.location, posting.posted_date
            )
            if job_id in seen_ids:
                logger.info("Duplicate in this batch, skipping: %r at %s",
                            posting.title, posting.company)
                result.cached_count += 1
                continue
            seen_ids.add(job_id)

            try:
                processed, cached = self.process(posting)
            except Exception as exc:
                logger.error("Failed to process %r: %s", posting.title, exc)
                result.failed_count += 1
                continue

            result.jobs.append(processed)
            if cached:
                result.cached_count += 1
            elif processed.ai_analysis is not None:
                result.new_count += 1

        result.qualified, rejected = qualify_jobs(result.jobs, self.config.qualification)
        result.rejections = get_rejection_summary(rejected)

        if result.qualified:
            result.review_path = write_review_file(
                result.qualified,
                self.config.review_path(self.platform),
                generated_at=datetime.now(timezone.utc),
            )
        else:
            logger.warning("No qualified jobs found in this batch")

        self.database.save_important_jobs(self.config.important_jobs_path(self.platform))
        self._log_stats(result)
        return result

    def _log_stats(self, result: RunResult) -> None:
        """Print a summary of the run and of the store."""
        logger.info("=== Run Summary (%s) ===", self.platform.value)
        logger.info("  Total postings: %d", len(result.jobs))
        logger.info("  Newly analyzed: %d", result.new_count)
        logger.info("  Loaded from cache: %d", result.cached_count)
        logger.info("  Failed: %d", result.failed_count)
        logger.info("  Qualified: %d", len(result.qualified))
        for reason, count in result.rejections.items():
            logger.info("  Rejected (%s): %d", reason, count)

        stats = self.database.get_stats(self.config.qualification.min_score)
        logger.info("=== Database Stats ===")
        for key, value in stats.items():
            logger.info("  %s: %d", key, value)
