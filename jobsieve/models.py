"""Data models for the job review pipeline.

Everything that crosses a file boundary (the analyzed-jobs store, the
important-jobs export, the review list) serializes through ``to_dict`` /
``from_dict`` here, using the camelCase keys of the on-disk format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

ANALYSIS_FAILED_FLAG = "ai_analysis_failed"
NOT_SPECIFIED = "Not specified"


class _CoercibleEnum(str, Enum):
    """String enum that maps unrecognized values onto a fallback member."""

    @classmethod
    def fallback(cls) -> "_CoercibleEnum":
        raise NotImplementedError

    @classmethod
    def coerce(cls, value: Any) -> "_CoercibleEnum":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.fallback()


class Platform(_CoercibleEnum):
    XING = "xing"
    LINKEDIN = "linkedin"

    @classmethod
    def fallback(cls) -> "Platform":
        return cls.XING


class JobDomain(_CoercibleEnum):
    SOFTWARE = "software"
    BIOTECH = "biotech"
    HEALTHCARE = "healthcare"
    MANUFACTURING = "manufacturing"
    FINANCE = "finance"
    OTHER = "other"
    UNKNOWN = "unknown"

    @classmethod
    def fallback(cls) -> "JobDomain":
        return cls.UNKNOWN


class DescriptionQuality(_CoercibleEnum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    GENERIC = "generic"

    @classmethod
    def fallback(cls) -> "DescriptionQuality":
        return cls.INCOMPLETE


class ConfidenceLevel(_CoercibleEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def fallback(cls) -> "ConfidenceLevel":
        return cls.LOW


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


@dataclass
class AIJobAnalysis:
    """Structured attributes extracted from a job description.

    Every field must be traceable to the description text; when the text
    says nothing, the field stays empty (or negative).
    """

    required_skills: list[str] = field(default_factory=list)
    tech_stack: list[str] = field(default_factory=list)
    experience_years: str = NOT_SPECIFIED
    benefits: list[str] = field(default_factory=list)
    summary: str = ""
    german_required: bool = False
    language_requirements: list[str] = field(default_factory=list)
    job_domain: JobDomain = JobDomain.UNKNOWN
    description_quality: DescriptionQuality = DescriptionQuality.INCOMPLETE
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    warning_flags: list[str] = field(default_factory=list)
    raw_description: Optional[str] = None
    translated_description: Optional[str] = None

    @property
    def analysis_failed(self) -> bool:
        """True when this is the fallback result of a failed model call."""
        return ANALYSIS_FAILED_FLAG in self.warning_flags

    def to_dict(self) -> dict:
        d = {
            "requiredSkills": list(self.required_skills),
            "techStack": list(self.tech_stack),
            "experienceYears": self.experience_years,
            "benefits": list(self.benefits),
            "summary": self.summary,
            "germanRequired": self.german_required,
            "languageRequirements": list(self.language_requirements),
            "jobDomain": self.job_domain.value,
            "descriptionQuality": self.description_quality.value,
            "confidenceLevel": self.confidence_level.value,
            "warningFlags": list(self.warning_flags),
        }
        if self.raw_description is not None:
            d["rawDescription"] = self.raw_description
        if self.translated_description is not None:
            d["translatedDescription"] = self.translated_description
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "AIJobAnalysis":
        """Rebuild an analysis previously written by ``to_dict``."""
        return cls(
            required_skills=_str_list(data.get("requiredSkills")),
            tech_stack=_str_list(data.get("techStack")),
            experience_years=str(data.get("experienceYears") or NOT_SPECIFIED),
            benefits=_str_list(data.get("benefits")),
            summary=str(data.get("summary") or ""),
            german_required=bool(data.get("germanRequired", False)),
            language_requirements=_str_list(data.get("languageRequirements")),
            job_domain=JobDomain.coerce(data.get("jobDomain")),
            description_quality=DescriptionQuality.coerce(data.get("descriptionQuality")),
            confidence_level=ConfidenceLevel.coerce(data.get("confidenceLevel")),
            warning_flags=_str_list(data.get("warningFlags")),
            raw_description=data.get("rawDescription"),
            translated_description=data.get("translatedDescription"),
        )


@dataclass
class ATSScore:
    """Match between a posting's requirements and the resume profile."""

    overall_score: int
    skills_match: int
    tech_stack_match: int
    experience_match: bool
    language_match: bool
    matched_skills: list[str] = field(default_factory=list)
    missing_skills: list[str] = field(default_factory=list)
    recommendation: str = ""

    def to_dict(self) -> dict:
        return {
            "overallScore": self.overall_score,
            "skillsMatch": self.skills_match,
            "techStackMatch": self.tech_stack_match,
            "experienceMatch": self.experience_match,
            "languageMatch": self.language_match,
            "matchedSkills": list(self.matched_skills),
            "missingSkills": list(self.missing_skills),
            "recommendation": self.recommendation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ATSScore":
        return cls(
            overall_score=int(data.get("overallScore", 0)),
            skills_match=int(data.get("skillsMatch", 0)),
            tech_stack_match=int(data.get("techStackMatch", 0)),
            experience_match=bool(data.get("experienceMatch", False)),
            language_match=bool(data.get("languageMatch", False)),
            matched_skills=_str_list(data.get("matchedSkills")),
            missing_skills=_str_list(data.get("missingSkills")),
            recommendation=str(data.get("recommendation") or ""),
        )


@dataclass
class ResumeProfile:
    """Static candidate capability set, read once per run."""

    skills: list[str] = field(default_factory=list)
    tech_stack: list[str] = field(default_factory=list)
    experience_years: int = 0
    languages: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)


@dataclass
class JobPosting:
    """A single job posting as handed over by the scraper.

    The scraper fills the raw strings; the pipeline attaches
    ``ai_analysis`` and ``ats_score`` once they are computed.
    """

    title: str
    company: str
    location: str = ""
    posted_date: str = ""  # as displayed on the site, e.g. "2 days ago"
    description: str = ""
    platform: Platform = Platform.XING
    salary_range: str = ""
    languages: list[str] = field(default_factory=list)
    is_german: bool = False
    ai_analysis: Optional[AIJobAnalysis] = None
    ats_score: Optional[ATSScore] = None

    @property
    def translated_description(self) -> Optional[str]:
        if self.ai_analysis is None:
            return None
        return self.ai_analysis.translated_description

    @property
    def german_required(self) -> bool:
        return bool(self.ai_analysis and self.ai_analysis.german_required)

    @property
    def overall_score(self) -> int:
        return self.ats_score.overall_score if self.ats_score else 0

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        d: dict[str, Any] = {
            "jobTitle": self.title,
            "company": self.company,
            "companyLocation": self.location,
            "salaryRange": self.salary_range,
            "datePosted": self.posted_date,
            "languages": list(self.languages),
            "description": self.description,
            "isGerman": self.is_german,
            "platform": self.platform.value,
        }
        if self.ai_analysis is not None:
            d["aiAnalysis"] = self.ai_analysis.to_dict()
        if self.translated_description is not None:
            d["translatedDescription"] = self.translated_description
        if self.ats_score is not None:
            d["atsScore"] = self.ats_score.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "JobPosting":
        """Build a posting from the stored format or from raw scraper output.

        Raw scraper output may use plain keys (``title``, ``location``,
        ``posted_date``); the stored format uses the camelCase keys.
        """
        analysis = data.get("aiAnalysis")
        score = data.get("atsScore")
        return cls(
            title=str(data.get("jobTitle", data.get("title", "")) or ""),
            company=str(data.get("company", "") or ""),
            location=str(
                data.get("companyLocation", data.get("location", "")) or ""
            ),
            posted_date=str(
                data.get("datePosted", data.get("posted_date", "")) or ""
            ),
            description=str(data.get("description", "") or ""),
            platform=Platform.coerce(data.get("platform")),
            salary_range=str(
                data.get("salaryRange", data.get("salary_range", "")) or ""
            ),
            languages=_str_list(data.get("languages")),
            is_german=bool(data.get("isGerman", data.get("is_german", False))),
            ai_analysis=AIJobAnalysis.from_dict(analysis) if isinstance(analysis, dict) else None,
            ats_score=ATSScore.from_dict(score) if isinstance(score, dict) else None,
        )

    def __repr__(self) -> str:
        return (
            f"JobPosting(title={self.title!r}, company={self.company!r}, "
            f"location={self.location!r}, platform={self.platform.value!r})"
        )


@dataclass
class StoredJob:
    """The durable record kept by the job database, keyed by ``id``."""

    id: str
    title: str
    company: str
    posted_date: str  # YYYY-MM-DD
    analyzed_at: str  # ISO 8601
    job_details: JobPosting
    platform: Platform = Platform.XING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "postedDate": self.posted_date,
            "analyzedAt": self.analyzed_at,
            "jobDetails": self.job_details.to_dict(),
            "platform": self.platform.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredJob":
        """Raises KeyError when a required field is missing."""
        details = JobPosting.from_dict(data["jobDetails"])
        platform = Platform.coerce(data.get("platform"))
        details.platform = platform
        return cls(
            id=data["id"],
            title=data.get("title", details.title),
            company=data.get("company", details.company),
            posted_date=data["postedDate"],
            analyzed_at=data["analyzedAt"],
            job_details=details,
            platform=platform,
        )
