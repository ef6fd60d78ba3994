"""Idempotent fix pull requests on a branch owned by thr8fix."""

import logging
from typing import Optional

from ..errors import RefExistsError
from ..state import ArtifactRef, CreateResult, FixProposal, Risk
from .github_host import SourceHost
from .issues import PRODUCT_TAG, build_marker

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "thr8/fix-"


def branch_name(vuln_id: str) -> str:
    return f"{BRANCH_PREFIX}{vuln_id.lower()}"


def pr_title(vuln_id: str) -> str:
    return f"{PRODUCT_TAG} Fix {vuln_id}"


def build_pr_body(vuln_id: str, fix: FixProposal, risk: Optional[Risk]) -> str:
    lines = [
        build_marker(vuln_id),
        "",
        f"## Automated fix for {vuln_id}",
        "",
        fix.explanation,
        "",
        f"**Confidence:** {fix.confidence.value}",
    ]

    if risk:
        lines += [
            "",
            "### Risk Context",
            "",
            f"**Risk Level:** {risk.pasta_level}",
            f"**Business Impact:** {risk.business_impact}",
        ]

    lines += ["", "### Changed Files", ""]
    lines += [f"- `{f.path}`" for f in fix.files]

    if fix.notes:
        lines += ["", "### Notes", "", fix.notes]

    return "\n".join(lines)


def find_existing_pr(host: SourceHost, vuln_id: str) -> Optional[ArtifactRef]:
    pulls = host.find_open_pulls(f"{host.owner}:{branch_name(vuln_id)}")
    return pulls[0] if pulls else None


def prepare_branch(host: SourceHost, branch: str) -> str:
    """Point ``branch`` at the default branch tip, creating it if needed.

    An existing branch is force-reset: it belongs to thr8fix, so any earlier
    content on it is discarded. Returns the default branch name.
    """
    base = host.default_branch()
    base_sha = host.branch_sha(base)
    try:
        host.create_branch(branch, base_sha)
        logger.info(f"[PR] Created branch {branch} at {base_sha[:7]}")
    except RefExistsError:
        logger.info(f"[PR] Branch {branch} exists, resetting to {base}@{base_sha[:7]}")
        host.force_update_branch(branch, base_sha)
    return base


def create_fix_pr(
    host: SourceHost,
    vuln_id: str,
    fix: FixProposal,
    risk: Optional[Risk],
) -> CreateResult:
    existing = find_existing_pr(host, vuln_id)
    if existing:
        logger.info(f"[PR] {vuln_id} already has open PR #{existing.number}")
        return CreateResult(created=False, artifact=existing)

    branch = branch_name(vuln_id)
    base = prepare_branch(host, branch)

    for file in fix.files:
        sha = host.file_sha(file.path, branch)
        host.put_file(
            path=file.path,
            content=file.fixed_content,
            message=f"{PRODUCT_TAG} Fix {vuln_id}: update {file.path}",
            branch=branch,
            sha=sha,
        )
        logger.info(f"[PR] Committed {file.path} to {branch}")

    pr = host.create_pull(
        title=pr_title(vuln_id),
        body=build_pr_body(vuln_id, fix, risk),
        head=branch,
        base=base,
    )
    logger.info(f"[PR] Opened #{pr.number} for {vuln_id}: {pr.url}")
    return CreateResult(created=True, artifact=pr)
