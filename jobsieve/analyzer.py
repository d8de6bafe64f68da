"""AI job analysis: translation plus structured extraction.

Per posting the analyzer moves through RAW → (TRANSLATED) → ANALYZED, or
falls back to a fixed default result when the model call or its output
fails. Nothing here raises to the caller: a broken backend lowers the
quality of the analysis but never stops the pipeline.

The model output is treated as untrusted. The first balanced ``{...}``
span is cut out of the reply, parsed, validated field by field against
the AIJobAnalysis shape, and then checked against the description text
so that skills the text never mentions are dropped.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from jobsieve.config import AnalysisConfig
from jobsieve.llm import LLMConnectionError, LLMError
from jobsieve.models import (
    ANALYSIS_FAILED_FLAG,
    NOT_SPECIFIED,
    AIJobAnalysis,
    ConfidenceLevel,
    DescriptionQuality,
    JobDomain,
)
from jobsieve.prompts import EXTRACTION_PROMPT, TRANSLATION_PROMPT

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("requiredSkills", "techStack", "germanRequired")

_GERMAN_MENTION_RE = re.compile(r"german|deutsch")
_WORD_RE = re.compile(r"[a-z0-9äöüß+#]+")


class ChatClient(Protocol):
    def chat(self, messages: list[dict[str, str]], model: str | None = None) -> str:
        ...


class AnalysisParseError(ValueError):
    """The model reply did not contain a valid analysis object."""


# ── Parsing ─────────────────────────────────────────────────────────────────


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals are ignored, so commentary before
    or after the object (and a second object) does not confuse it.
    """
    start = text.find("{")
    if start == -1:
        raise AnalysisParseError("no JSON object found in model output")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    raise AnalysisParseError("unbalanced JSON object in model output")


def _string_list(payload: dict, key: str) -> list[str]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise AnalysisParseError(f"{key} must be a list, got {type(value).__name__}")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise AnalysisParseError(f"{key} must contain strings, got {type(item).__name__}")
        item = item.strip()
        if item:
            items.append(item)
    return items


def format_language_requirement(entry: Any) -> str:
    """Render one language requirement as an annotated string.

    Strings pass through; objects such as
    ``{"language": "German", "proficiency": "fluent", "required": true}``
    become ``"German (fluent, required)"``.
    """
    if isinstance(entry, str):
        return entry.strip()
    if not isinstance(entry, dict):
        raise AnalysisParseError("languageRequirements entries must be strings or objects")

    name = str(entry.get("language") or entry.get("name") or "").strip()
    if not name:
        raise AnalysisParseError("language requirement without a language name")

    notes = []
    proficiency = entry.get("proficiency") or entry.get("level")
    if proficiency:
        notes.append(str(proficiency).strip())
    required = entry.get("required")
    if isinstance(required, bool):
        notes.append("required" if required else "optional")
    return f"{name} ({', '.join(notes)})" if notes else name


def _bool_field(payload: dict, key: str) -> bool:
    value = payload.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise AnalysisParseError(f"{key} must be a boolean")


def parse_analysis(payload: Any) -> AIJobAnalysis:
    """Validate a decoded model reply and build an AIJobAnalysis.

    ``requiredSkills``, ``techStack`` and ``germanRequired`` must be
    present. Other missing fields take their empty defaults; enum fields
    with unrecognized values fall back to unknown/incomplete/low.
    """
    if not isinstance(payload, dict):
        raise AnalysisParseError("analysis must be a JSON object")

    missing = [key for key in REQUIRED_FIELDS if key not in payload]
    if missing:
        raise AnalysisParseError(f"missing fields: {', '.join(missing)}")

    languages_raw = payload.get("languageRequirements") or []
    if not isinstance(languages_raw, list):
        raise AnalysisParseError("languageRequirements must be a list")
    languages = [format_language_requirement(entry) for entry in languages_raw]

    experience = payload.get("experienceYears")
    if isinstance(experience, (int, float)) and not isinstance(experience, bool):
        experience = f"{int(experience)} years"
    elif not isinstance(experience, str) or not experience.strip():
        experience = NOT_SPECIFIED

    summary = payload.get("summary")

    return AIJobAnalysis(
        required_skills=_string_list(payload, "requiredSkills"),
        tech_stack=_string_list(payload, "techStack"),
        experience_years=experience.strip(),
        benefits=_string_list(payload, "benefits"),
        summary=summary.strip() if isinstance(summary, str) else "",
        german_required=_bool_field(payload, "germanRequired"),
        language_requirements=[lang for lang in languages if lang],
        job_domain=JobDomain.coerce(payload.get("jobDomain")),
        description_quality=DescriptionQuality.coerce(payload.get("descriptionQuality")),
        confidence_level=ConfidenceLevel.coerce(payload.get("confidenceLevel")),
        warning_flags=_string_list(payload, "warningFlags"),
    )


# ── Grounding ───────────────────────────────────────────────────────────────


def is_grounded(term: str, text: str) -> bool:
    """True if ``term`` (or every word of it) occurs in ``text``.

    ``text`` is expected to be lowercased already.
    """
    term = term.lower().strip()
    if not term:
        return False
    if term in text:
        return True
    words = [w for w in _WORD_RE.findall(term) if len(w) >= 2]
    return bool(words) and all(w in text for w in words)


def ground_analysis(analysis: AIJobAnalysis, description: str) -> AIJobAnalysis:
    """Drop extracted values that have no support in ``description``."""
    text = description.lower()

    skills = [s for s in analysis.required_skills if is_grounded(s, text)]
    if len(skills) < len(analysis.required_skills):
        dropped = sorted(set(analysis.required_skills) - set(skills))
        logger.info("Dropped skills not found in description: %s", ", ".join(dropped))
        analysis.required_skills = skills
        analysis.warning_flags.append("ungrounded_skills_removed")

    tech = [t for t in analysis.tech_stack if is_grounded(t, text)]
    if len(tech) < len(analysis.tech_stack):
        dropped = sorted(set(analysis.tech_stack) - set(tech))
        logger.info("Dropped technologies not found in description: %s", ", ".join(dropped))
        analysis.tech_stack = tech
        analysis.warning_flags.append("ungrounded_tech_removed")

    if analysis.german_required and not _GERMAN_MENTION_RE.search(text):
        logger.info("German marked as required but never mentioned — resetting")
        analysis.german_required = False
        analysis.warning_flags.append("ungrounded_german_requirement")

    return analysis


def default_analysis(error: str) -> AIJobAnalysis:
    """The result used whenever extraction fails.

    Distinguishable from a genuine empty extraction by the failure flag.
    """
    return AIJobAnalysis(
        required_skills=[],
        tech_stack=[],
        experience_years=NOT_SPECIFIED,
        benefits=[],
        summary="AI analysis not available",
        german_required=False,
        language_requirements=[],
        job_domain=JobDomain.UNKNOWN,
        description_quality=DescriptionQuality.INCOMPLETE,
        confidence_level=ConfidenceLevel.LOW,
        warning_flags=[ANALYSIS_FAILED_FLAG, error[:50]],
    )


# ── Analyzer ────────────────────────────────────────────────────────────────


class JobAnalyzer:
    """Runs translation and extraction against a chat backend."""

    def __init__(
        self,
        client: ChatClient,
        config: AnalysisConfig | None = None,
        model: str | None = None,
        translation_model: str | None = None,
    ):
        self.client = client
        self.config = config or AnalysisConfig()
        self.model = model
        self.translation_model = translation_model or model

    def translate_to_english(self, text: str, is_german: bool) -> str:
        """Translate German text; anything else is returned as is.

        Best effort: on any failure the original text comes back.
        """
        if not is_german:
            return text

        logger.info("Translating description (%d chars)", len(text))
        prompt = TRANSLATION_PROMPT.format(text=text)
        try:
            translated = self.client.chat(
                [{"role": "user", "content": prompt}], model=self.translation_model
            ).strip()
        except Exception as exc:
            logger.warning("Translation failed, using original text: %s", exc)
            return text

        if not translated:
            logger.warning("Translation came back empty, using original text")
            return text
        return translated

    def analyze_with_ai(self, description: str) -> AIJobAnalysis:
        """Extract an AIJobAnalysis from ``description`` with one model call."""
        prompt = EXTRACTION_PROMPT.format(description=description)

        try:
            content = self.client.chat([{"role": "user", "content": prompt}], model=self.model)
            payload = json.loads(extract_json_object(content))
            analysis = parse_analysis(payload)
        except LLMConnectionError as exc:
            logger.error("AI analysis failed: cannot connect to the language model "
                         "backend — is it running? (%s)", exc)
            return default_analysis(str(exc))
        except LLMError as exc:
            logger.error("AI analysis failed: backend error: %s", exc)
            return default_analysis(str(exc))
        except json.JSONDecodeError as exc:
            logger.error("AI analysis failed: model reply is not valid JSON: %s", exc)
            return default_analysis(str(exc))
        except AnalysisParseError as exc:
            logger.error("AI analysis failed: %s", exc)
            return default_analysis(str(exc))
        except Exception as exc:
            logger.exception("AI analysis failed unexpectedly")
            return default_analysis(str(exc))

        if self.config.enforce_grounding:
            analysis = ground_analysis(analysis, description)

        logger.info(
            "AI analysis complete: domain=%s, confidence=%s, german required=%s, languages=%s",
            analysis.job_domain.value,
            analysis.confidence_level.value,
            "yes" if analysis.german_required else "no",
            ", ".join(analysis.language_requirements) or "none specified",
        )
        return analysis

    def analyze_job(self, description: str, is_german: bool) -> AIJobAnalysis:
        """Translate if needed, analyze, and keep both texts on the result."""
        working = description
        translated = None
        if is_german:
            translated = self.translate_to_english(description, is_german)
            working = translated

        analysis = self.analyze_with_ai(working)
        analysis.raw_description = description
        if translated is not None:
            analysis.translated_description = translated
        return analysis
