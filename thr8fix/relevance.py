"""Rank scanned files by textual relevance to a finding."""

import re
from typing import Optional

from .state import Recommendation, ScannedFile, Vulnerability

MAX_RELEVANT_FILES = 8

PATH_WEIGHT = 3
CONTENT_WEIGHT = 1
SENSITIVE_PATH_BONUS = 2

SENSITIVE_PATH_RE = re.compile(r"auth|security|middleware|config|route|controller", re.IGNORECASE)
WORD_SPLIT_RE = re.compile(r"\W+")


def extract_keywords(
    vuln: Vulnerability,
    recommendation: Optional[Recommendation] = None,
) -> list[str]:
    """Distinct lower-case tokens longer than two characters, in first-seen order."""
    search_text = " ".join([
        vuln.title or "",
        vuln.description or "",
        recommendation.action if recommendation else "",
    ]).lower()
    tokens = [w for w in WORD_SPLIT_RE.split(search_text) if len(w) > 2]
    return list(dict.fromkeys(tokens))


def score_file(file: ScannedFile, keywords: list[str]) -> int:
    file_path = file.path.lower()
    file_content = (file.content or "").lower()

    score = 0
    for kw in keywords:
        if kw in file_path:
            score += PATH_WEIGHT
        if kw in file_content:
            score += CONTENT_WEIGHT

    if SENSITIVE_PATH_RE.search(file.path):
        score += SENSITIVE_PATH_BONUS

    return score


def select_relevant_files(
    files: list[ScannedFile],
    vuln: Vulnerability,
    recommendation: Optional[Recommendation] = None,
    top_k: int = MAX_RELEVANT_FILES,
) -> list[ScannedFile]:
    """Highest scoring files first; zero scores dropped, ties keep input order."""
    if not files:
        return []

    keywords = extract_keywords(vuln, recommendation)
    scored = [(score_file(f, keywords), f) for f in files]
    scored = [item for item in scored if item[0] > 0]
    scored.sort(key=lambda item: item[0], reverse=True)
    return [f for _, f in scored[:top_k]]
