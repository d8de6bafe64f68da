"""Description clean-up and cheap text heuristics.

Runs before anything is sent to the model: turns scraped HTML into
text, strips the page chrome that follows the actual posting, and makes
the German-or-not call that decides whether the text gets translated.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from jobsieve.models import DescriptionQuality

# Text after these markers belongs to the page, not the posting.
END_MARKERS = [
    "Similar jobs",
    "Ähnliche Jobs",
    "Ähnliche Stellenangebote",
    "More jobs like this",
    "Want to hear about similar jobs",
    "Möchten Sie über ähnliche Jobs",
    "Save this job",
    "Speichern Sie diese Stelle",
    "Share job",
    "Stelle teilen",
    "Apply now",
    "Jetzt bewerben",
]
# Markers this early are part of the posting header, not the footer.
MIN_CUT_POSITION = 500

_GERMAN_INDICATORS = [
    re.compile(r"\b(der|die|das|ein|eine|und|oder|mit|für|von|zu|im|am|auf|bei)\b", re.IGNORECASE),
    re.compile(r"\b(Sie|Ihre|Unser|Wir|Deine|Ihr)\b"),
    re.compile(r"\b(Kenntnisse|Erfahrung|Aufgaben|Anforderungen|Qualifikationen)\b", re.IGNORECASE),
]

_REQUIREMENTS_RE = re.compile(r"requirement|qualification|must have|skills|experience|education", re.IGNORECASE)
_RESPONSIBILITIES_RE = re.compile(r"responsibilit|duties|you will|role involves", re.IGNORECASE)
_BOILERPLATE_RE = re.compile(r"equal opportunity|privacy policy|sign up|subscribe", re.IGNORECASE)

_HTML_TAG_RE = re.compile(r"<[a-zA-Z][^>]*>")


def html_to_text(html: str) -> str:
    """Convert HTML content to plain text."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    return soup.get_text(separator="\n", strip=True)


def clean_description(text: str, max_chars: int = 5000) -> str:
    """Normalize a scraped description.

    HTML is flattened to text, everything from the earliest footer marker
    on is cut (only if the marker sits past ``MIN_CUT_POSITION``), and the
    result is truncated to ``max_chars``.
    """
    if not text:
        return ""
    if _HTML_TAG_RE.search(text):
        text = html_to_text(text)
    text = text.strip()

    cut_at = -1
    for marker in END_MARKERS:
        idx = text.find(marker)
        if idx > MIN_CUT_POSITION and (cut_at == -1 or idx < cut_at):
            cut_at = idx
    if cut_at != -1:
        text = text[:cut_at].strip()

    return text[:max_chars]


def assess_description_quality(text: str) -> DescriptionQuality:
    has_requirements = bool(_REQUIREMENTS_RE.search(text))
    has_responsibilities = bool(_RESPONSIBILITIES_RE.search(text))
    is_generic = len(text) < 300 or bool(_BOILERPLATE_RE.search(text))

    if has_requirements and has_responsibilities and not is_generic:
        return DescriptionQuality.COMPLETE
    if is_generic:
        return DescriptionQuality.GENERIC
    return DescriptionQuality.INCOMPLETE


def count_german_indicators(text: str) -> int:
    return sum(len(pattern.findall(text)) for pattern in _GERMAN_INDICATORS)


def detect_german(text: str, threshold: int = 10) -> bool:
    """True when the text has more than ``threshold`` German indicator words."""
    return count_german_indicators(text) > threshold


def extract_languages(text: str) -> list[str]:
    """Languages the text mentions by name ("German", "English")."""
    found = []
    if re.search(r"\b(German|Deutsch|Deutsche)\b", text, re.IGNORECASE):
        found.append("German")
    if re.search(r"\b(English|Englisch)\b", text, re.IGNORECASE):
        found.append("English")
    return found
