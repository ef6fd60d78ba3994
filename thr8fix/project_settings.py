"""Remediation settings: environment / .env file, or the webapp project API."""

import logging
import os
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel

from .state import RemediationPolicy, Severity

logger = logging.getLogger(__name__)

WEBAPP_API_URL = os.environ.get("WEBAPP_API_URL", "http://webapp:3000")


class RemediationSettings(BaseModel):
    github_token: str = ""
    github_repo: str = ""
    model: str = "claude-sonnet-4-6"
    max_output_tokens: int = 8192
    max_continuations: int = 2
    top_k_files: int = 8
    call_timeout: float = 300.0
    github_timeout: int = 30
    issue_page_size: int = 100
    create_issues: bool = True
    auto_fix: bool = False
    pr_severities: list[str] = ["critical", "high"]

    def policy(self) -> RemediationPolicy:
        return RemediationPolicy(
            create_issues=self.create_issues,
            auto_fix=self.auto_fix,
            pr_severities={Severity.parse(s) for s in self.pr_severities} - {None},
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_from_env(env_file: Optional[Path] = None) -> RemediationSettings:
    """Build settings from THR8_* / GITHUB_* environment variables."""
    load_dotenv(env_file or Path.cwd() / ".env")
    defaults = RemediationSettings()

    pr_severity = os.environ.get("THR8_PR_SEVERITY", "")
    return RemediationSettings(
        github_token=os.environ.get("GITHUB_TOKEN", ""),
        github_repo=os.environ.get("GITHUB_REPOSITORY", ""),
        model=os.environ.get("THR8_MODEL") or defaults.model,
        max_output_tokens=int(os.environ.get("THR8_MAX_OUTPUT_TOKENS", defaults.max_output_tokens)),
        max_continuations=int(os.environ.get("THR8_MAX_CONTINUATIONS", defaults.max_continuations)),
        top_k_files=int(os.environ.get("THR8_TOP_K_FILES", defaults.top_k_files)),
        call_timeout=float(os.environ.get("THR8_CALL_TIMEOUT", defaults.call_timeout)),
        github_timeout=int(os.environ.get("THR8_GITHUB_TIMEOUT", defaults.github_timeout)),
        issue_page_size=int(os.environ.get("THR8_ISSUE_PAGE_SIZE", defaults.issue_page_size)),
        create_issues=_env_bool("THR8_CREATE_ISSUES", defaults.create_issues),
        auto_fix=_env_bool("THR8_AUTO_FIX", defaults.auto_fix),
        pr_severities=(
            [s.strip() for s in pr_severity.split(",") if s.strip()]
            if pr_severity else defaults.pr_severities
        ),
    )


async def load_remediation_settings(project_id: str) -> dict:
    """Fetch thr8 settings for a project from the webapp API."""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(f"{WEBAPP_API_URL}/api/projects/{project_id}")
            resp.raise_for_status()
            project = resp.json()
            return {
                "github_token": project.get("thr8GithubToken", ""),
                "github_repo": project.get("thr8GithubRepo", ""),
                "model": project.get("thr8LlmModel", "") or project.get("agentOpenaiModel", ""),
                "create_issues": project.get("thr8CreateIssues", True),
                "auto_fix": project.get("thr8AutoFix", False),
                "pr_severities": project.get("thr8PrSeverities", ["critical", "high"]),
            }
    except Exception as e:
        logger.error(f"Failed to load thr8 settings: {e}")
        return {}
