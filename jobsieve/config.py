"""Configuration loader for the job review pipeline.

Reads config.yaml and returns typed configuration objects that the
store, analyzer, scorer and qualification filter consume.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from jobsieve.models import Platform, ResumeProfile

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

DEFAULT_KEY_SKILLS = ["playwright", "python", "typescript"]


@dataclass
class LLMConfig:
    """Where the local language-model backend lives and which model to use."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    translation_model: str = ""  # empty means: same as model
    timeout_seconds: float = 120.0


@dataclass
class AnalysisConfig:
    """Knobs for description preparation and the extraction protocol."""

    # Hand-tuned heuristics, not calibrated against real data yet.
    german_detection_threshold: int = 10
    min_description_chars: int = 100
    max_description_chars: int = 5000
    enforce_grounding: bool = True


@dataclass
class QualificationCriteria:
    """Thresholds for the final include/exclude decision."""

    min_score: int = 40
    allowed_domains: list[str] = field(default_factory=lambda: ["software", "unknown"])
    low_confidence_min_score: int = 60


@dataclass
class PipelineConfig:
    """Top-level pipeline configuration."""

    data_dir: str = "data"
    log_level: str = "INFO"
    retention_days: int = 30
    key_skills: list[str] = field(default_factory=lambda: list(DEFAULT_KEY_SKILLS))
    llm: LLMConfig = field(default_factory=LLMConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    qualification: QualificationCriteria = field(default_factory=QualificationCriteria)
    resume: ResumeProfile = field(default_factory=ResumeProfile)

    def store_path(self, platform: Platform) -> Path:
        return Path(self.data_dir) / f"{platform.value}-analyzed-jobs.json"

    def important_jobs_path(self, platform: Platform) -> Path:
        return Path(self.data_dir) / f"{platform.value}-important-jobs.json"

    def review_path(self, platform: Platform) -> Path:
        return Path(self.data_dir) / f"{platform.value}-apply-list.json"


def load_config(path: Path | str | None = None) -> PipelineConfig:
    """Load and validate the pipeline configuration from a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning("Config file not found at %s — using defaults", config_path)
        return PipelineConfig()

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not raw:
        return PipelineConfig()

    llm_raw = raw.get("llm") or {}
    llm = LLMConfig(
        host=llm_raw.get("host", LLMConfig.host),
        model=llm_raw.get("model", LLMConfig.model),
        translation_model=llm_raw.get("translation_model", ""),
        timeout_seconds=float(llm_raw.get("timeout_seconds", LLMConfig.timeout_seconds)),
    )

    analysis_raw = raw.get("analysis") or {}
    analysis = AnalysisConfig(
        german_detection_threshold=int(analysis_raw.get("german_detection_threshold", 10)),
        min_description_chars=int(analysis_raw.get("min_description_chars", 100)),
        max_description_chars=int(analysis_raw.get("max_description_chars", 5000)),
        enforce_grounding=bool(analysis_raw.get("enforce_grounding", True)),
    )

    qual_raw = raw.get("qualification") or {}
    qualification = QualificationCriteria(
        min_score=int(qual_raw.get("min_score", 40)),
        allowed_domains=[
            d.lower() for d in qual_raw.get("allowed_domains", ["software", "unknown"])
        ],
        low_confidence_min_score=int(qual_raw.get("low_confidence_min_score", 60)),
    )

    resume_raw = raw.get("resume") or {}
    resume = ResumeProfile(
        skills=list(resume_raw.get("skills", [])),
        tech_stack=list(resume_raw.get("tech_stack", [])),
        experience_years=int(resume_raw.get("experience_years", 0)),
        languages=list(resume_raw.get("languages", [])),
        domains=list(resume_raw.get("domains", [])),
    )

    return PipelineConfig(
        data_dir=raw.get("data_dir", "data"),
        log_level=raw.get("log_level", "INFO"),
        retention_days=int(raw.get("retention_days", 30)),
        key_skills=list(raw.get("key_skills", DEFAULT_KEY_SKILLS)),
        llm=llm,
        analysis=analysis,
        qualification=qualification,
        resume=resume,
    )
