"""Resume/ATS scoring.

Scores a posting's extracted requirements against the static resume
profile. The score is a fixed weighting:

    skills match   × 0.4
  + tech match     × 0.4
  + 20 if the experience requirement is met
  − 10 if a required (non-German) language is missing

rounded and clamped to 0–100. German-mandatory postings short-circuit to
a zero score because they are excluded downstream anyway.
"""

from __future__ import annotations

import math
import re
from enum import Enum

from jobsieve.models import ATSScore, ResumeProfile

SKILLS_WEIGHT = 0.4
TECH_WEIGHT = 0.4
EXPERIENCE_POINTS = 20
LANGUAGE_PENALTY = 10

# Tokens this short ("qa", "api", "sql") would match too much.
_MIN_TOKEN_LEN = 4

_GERMAN_NAMES = ("german", "deutsch")
_OPTIONAL_MARKERS = ("optional", "nice to have", "von vorteil", "wünschenswert")


class Recommendation(str, Enum):
    EXCELLENT = "EXCELLENT MATCH - Apply immediately!"
    GOOD = "GOOD MATCH - Worth applying"
    MODERATE = "MODERATE MATCH - Consider if interested"
    LOW = "LOW MATCH - May not be suitable"
    SKIP = "SKIP - German language required"


class ResumeNotLoadedError(RuntimeError):
    """Scoring was attempted before a resume profile was loaded."""


def recommendation_for(score: int) -> Recommendation:
    if score >= 75:
        return Recommendation.EXCELLENT
    if score >= 60:
        return Recommendation.GOOD
    if score >= 40:
        return Recommendation.MODERATE
    return Recommendation.LOW


def similarity_match(a: str, b: str) -> bool:
    """Three-tier fuzzy comparison of two skill names.

    Matches on (1) equality, (2) containment either way, or (3) any pair
    of words longer than three characters where one contains the other.
    """
    s1 = a.lower().strip()
    s2 = b.lower().strip()

    if s1 == s2:
        return True
    if s1 and s2 and (s1 in s2 or s2 in s1):
        return True

    words1 = [w for w in s1.split() if len(w) >= _MIN_TOKEN_LEN]
    words2 = [w for w in s2.split() if len(w) >= _MIN_TOKEN_LEN]
    return any(w1 in w2 or w2 in w1 for w1 in words1 for w2 in words2)


def find_matches(resume_items: list[str], job_items: list[str]) -> list[str]:
    """For each job item, the first resume item that matches it.

    Returns resume entries, one per matched job item.
    """
    matches = []
    for job_item in job_items:
        for resume_item in resume_items:
            if similarity_match(job_item, resume_item):
                matches.append(resume_item)
                break
    return matches


def parse_experience_years(text: str) -> int:
    """First integer in strings like "3-5 years" or "5+ years"; 0 if none."""
    if not text or "not specified" in text.lower():
        return 0
    m = re.search(r"(\d+)", text)
    return int(m.group(1)) if m else 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_optional(requirement: str) -> bool:
    lower = requirement.lower()
    return any(marker in lower for marker in _OPTIONAL_MARKERS)


class ResumeAnalyzer:
    """Holds the resume profile and scores postings against it."""

    def __init__(self, profile: ResumeProfile | None = None):
        self._profile = profile

    def load_profile(self, profile: ResumeProfile) -> None:
        self._profile = profile

    @property
    def profile(self) -> ResumeProfile | None:
        return self._profile

    def calculate_ats_score(
        self,
        job_skills: list[str],
        job_tech_stack: list[str],
        job_experience_years: str,
        job_languages: list[str],
        german_required: bool,
    ) -> ATSScore:
        if german_required:
            return ATSScore(
                overall_score=0,
                skills_match=0,
                tech_stack_match=0,
                experience_match=False,
                language_match=False,
                matched_skills=[],
                missing_skills=[],
                recommendation=Recommendation.SKIP.value,
            )

        profile = self._profile
        if profile is None:
            raise ResumeNotLoadedError("Resume profile not loaded. Call load_profile first.")

        matched_skills = find_matches(profile.skills, job_skills)
        skills_pct = len(matched_skills) / max(1, len(job_skills)) * 100

        matched_tech = find_matches(profile.tech_stack, job_tech_stack)
        tech_pct = len(matched_tech) / max(1, len(job_tech_stack)) * 100

        required_years = parse_experience_years(job_experience_years)
        experience_match = required_years == 0 or profile.experience_years >= required_years

        language_match = self.check_language_match(job_languages)

        raw_score = round_half_up(
            skills_pct * SKILLS_WEIGHT
            + tech_pct * TECH_WEIGHT
            + (EXPERIENCE_POINTS if experience_match else 0)
            - (0 if language_match else LANGUAGE_PENALTY)
        )
        overall = max(0, min(100, raw_score))

        missing_skills = [
            skill for skill in job_skills
            if not any(similarity_match(skill, own) for own in profile.skills)
        ]

        return ATSScore(
            overall_score=overall,
            skills_match=round_half_up(skills_pct),
            tech_stack_match=round_half_up(tech_pct),
            experience_match=experience_match,
            language_match=language_match,
            matched_skills=matched_skills,
            missing_skills=missing_skills,
            recommendation=recommendation_for(overall).value,
        )

    def check_language_match(self, job_languages: list[str]) -> bool:
        """False only if a required non-German language is not spoken.

        German is judged separately through ``german_required``; entries
        marked optional never fail the match.
        """
        profile = self._profile
        if profile is None:
            raise ResumeNotLoadedError("Resume profile not loaded. Call load_profile first.")

        own = [lang.lower().strip() for lang in profile.languages if lang.strip()]
        for requirement in job_languages:
            lower = requirement.lower()
            if any(name in lower for name in _GERMAN_NAMES):
                continue
            if _is_optional(lower):
                continue
            if not any(lang in lower or lower in lang for lang in own):
                return False
        return True
