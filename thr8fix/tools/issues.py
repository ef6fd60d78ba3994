"""Idempotent tracking issues keyed by a hidden dedup marker."""

import logging
from typing import Optional

from ..state import ArtifactRef, CreateResult, Recommendation, Risk, Severity, Vulnerability
from .github_host import SourceHost

logger = logging.getLogger(__name__)

PRODUCT_TAG = "[thr8]"
MARKER_PREFIX = "<!-- thr8:"
MARKER_SUFFIX = " -->"
TRACKING_LABEL = "threat-model"
TRACKING_LABEL_COLOR = "6366f1"
SEVERITY_LABEL_COLOR = "e11d48"
LIST_PAGE_SIZE = 100


def build_marker(vuln_id: str) -> str:
    return f"{MARKER_PREFIX}{vuln_id}{MARKER_SUFFIX}"


def severity_label(severity: Optional[Severity]) -> str:
    level = severity.value if severity else Severity.MEDIUM.value
    return f"severity:{level.lower()}"


def severity_text(severity: Optional[Severity]) -> str:
    return severity.value if severity else "Unrated"


def build_issue_body(
    vuln: Vulnerability,
    risk: Optional[Risk],
    recommendation: Optional[Recommendation],
) -> str:
    lines = [
        build_marker(vuln.id),
        "",
        f"**Severity:** {severity_text(vuln.severity)}",
    ]

    if risk:
        lines.append(f"**Risk Level:** {risk.pasta_level}")
        lines.append(f"**Business Impact:** {risk.business_impact}")
        if risk.mitigation_complexity:
            lines.append(f"**Fix Complexity:** {risk.mitigation_complexity}")

    lines += ["", "---", "", "### Description", "", vuln.description or vuln.title]

    if recommendation:
        lines += ["", "### Recommended Action", "", recommendation.action]

    return "\n".join(lines)


def _as_ref(issue: dict) -> ArtifactRef:
    return ArtifactRef(number=issue["number"], title=issue.get("title", ""), url=issue.get("url", ""))


def find_existing_issue(host: SourceHost, vuln_id: str, page_size: int = LIST_PAGE_SIZE):
    """Return the issue carrying this vuln's marker, or None.

    Search is tried first; if it is unavailable (e.g. GHES without search) the
    open issues carrying the tracking label are scanned instead. A failure of
    the fallback listing propagates, so no duplicate is created blindly.
    """
    marker = build_marker(vuln_id)

    try:
        query = f'repo:{host.owner}/{host.repo_name} is:issue "{marker}" in:body'
        items = host.search_issues(query, limit=1)
        if items:
            return _as_ref(items[0])
    except Exception as e:
        logger.info(f"[ISSUE] Search unavailable for {vuln_id} ({e}), scanning open issues")

    for issue in host.list_open_issues(TRACKING_LABEL, limit=page_size):
        if marker in (issue.get("body") or ""):
            return _as_ref(issue)
    return None


def create_issue_if_not_exists(
    host: SourceHost,
    vuln: Vulnerability,
    risk: Optional[Risk],
    recommendation: Optional[Recommendation],
    page_size: int = LIST_PAGE_SIZE,
) -> CreateResult:
    existing = find_existing_issue(host, vuln.id, page_size=page_size)
    if existing:
        logger.info(f"[ISSUE] {vuln.id} already tracked by #{existing.number}")
        return CreateResult(created=False, artifact=existing)

    labels = [TRACKING_LABEL, severity_label(vuln.severity)]
    for label in labels:
        color = SEVERITY_LABEL_COLOR if label.startswith("severity:") else TRACKING_LABEL_COLOR
        status = host.get_or_create_label(label, color)
        logger.debug(f"[LABEL] {label}: {status.value}")

    title = f"{PRODUCT_TAG} {vuln.title} ({severity_text(vuln.severity)})"
    issue = host.create_issue(title=title, body=build_issue_body(vuln, risk, recommendation),
                              labels=labels)
    logger.info(f"[ISSUE] Created #{issue.number} for {vuln.id}")
    return CreateResult(created=True, artifact=issue)
