"""
Pytest configuration and fixtures
Shared fakes for the source host and the fix generator.
"""

import re
import time

import pytest

from thr8fix.errors import ExternalServiceError, RefExistsError
from thr8fix.state import (
    ArtifactRef,
    FixProposal,
    LabelStatus,
    ScannedFile,
    ThreatModel,
)


class FakeHost:
    """In-memory SourceHost. Every mutating call is recorded in ``writes``."""

    owner = "test-owner"
    repo_name = "test-repo"

    def __init__(self, search_available: bool = True):
        self.search_available = search_available
        self.issues: list[dict] = []
        self.labels: set[str] = set()
        self.pulls: list[dict] = []
        self.branches: dict[str, str] = {"main": "base-sha-123"}
        self.files: dict[tuple[str, str], tuple[str, str]] = {
            ("main", "src/db.js"): ("abc123", "db.query('SELECT ' + id)"),
        }
        self.writes: list[tuple] = []
        self.fail_on: set[str] = set()
        self.label_race: set[str] = set()
        self.delays: dict[str, float] = {}
        self._counter = 0

    def _check(self, op: str):
        if op in self.delays:
            time.sleep(self.delays[op])
        if op in self.fail_on:
            raise ExternalServiceError(f"{op} failed", status=500)

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    # issues
    def search_issues(self, query: str, limit: int = 1) -> list[dict]:
        if not self.search_available:
            raise ExternalServiceError("search unavailable", status=503)
        marker = re.search(r'"(.*)"', query).group(1)
        return [i for i in self.issues if marker in i["body"]][:limit]

    def list_open_issues(self, label: str, limit: int = 100) -> list[dict]:
        self._check("list_open_issues")
        return [i for i in self.issues if label in i["labels"]][:limit]

    def get_or_create_label(self, name: str, color: str) -> LabelStatus:
        if name in self.labels:
            return LabelStatus.EXISTING
        self.labels.add(name)
        if name in self.label_race:
            return LabelStatus.CONFLICT
        self.writes.append(("create_label", name))
        return LabelStatus.CREATED

    def create_issue(self, title: str, body: str, labels: list[str]) -> ArtifactRef:
        self._check("create_issue")
        number = self._next()
        url = f"https://github.com/test-owner/test-repo/issues/{number}"
        self.issues.append({"number": number, "title": title, "url": url,
                            "body": body, "labels": list(labels)})
        self.writes.append(("create_issue", title))
        return ArtifactRef(number=number, title=title, url=url)

    # pull requests
    def find_open_pulls(self, head: str) -> list[ArtifactRef]:
        self._check("find_open_pulls")
        return [p["ref"] for p in self.pulls if p["head"] == head]

    def default_branch(self) -> str:
        return "main"

    def branch_sha(self, branch: str) -> str:
        return self.branches[branch]

    def create_branch(self, branch: str, sha: str) -> None:
        self._check("create_branch")
        if branch in self.branches:
            raise RefExistsError(f"Branch {branch} already exists", status=422)
        self.branches[branch] = sha
        for (b, path), value in list(self.files.items()):
            if b == "main":
                self.files[(branch, path)] = value
        self.writes.append(("create_branch", branch, sha))

    def force_update_branch(self, branch: str, sha: str) -> None:
        self.branches[branch] = sha
        self.writes.append(("force_update_branch", branch, sha))

    def file_sha(self, path: str, branch: str):
        entry = self.files.get((branch, path))
        return entry[0] if entry else None

    def put_file(self, path, content, message, branch, sha=None) -> None:
        self._check("put_file")
        self.files[(branch, path)] = (f"sha-{self._next()}", content)
        self.writes.append(("put_file", path, branch, sha))

    def create_pull(self, title: str, body: str, head: str, base: str) -> ArtifactRef:
        self._check("create_pull")
        number = self._next()
        ref = ArtifactRef(number=number, title=title,
                          url=f"https://github.com/test-owner/test-repo/pull/{number}")
        self.pulls.append({"head": f"{self.owner}:{head}", "base": base, "body": body, "ref": ref})
        self.writes.append(("create_pull", head, base))
        return ref


class FakeFixGenerator:
    """Returns a fixed proposal (or raises) and records every request."""

    def __init__(self, proposal=None, error: Exception = None):
        self.proposal = proposal
        self.error = error
        self.calls: list[dict] = []

    async def propose_fix(self, vuln, risk, recommendation, files):
        self.calls.append({"vuln": vuln, "risk": risk, "recommendation": recommendation,
                           "files": files})
        if self.error:
            raise self.error
        return self.proposal


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def threat_model_data():
    return {
        "attack_surfaces": [{
            "name": "API",
            "vulnerabilities": [
                {"id": "V-001", "title": "SQL Injection", "description": "Unsanitized input",
                 "severity": "Critical"},
                {"id": "V-002", "title": "Missing CSRF", "description": "No CSRF tokens",
                 "severity": "Medium"},
            ],
        }],
        "risk_analysis": [
            {"risk_id": "R-001", "title": "Data Breach", "pasta_level": "Critical",
             "business_impact": "High", "mitigation_complexity": "Low",
             "linked_vulnerabilities": ["V-001"]},
            {"risk_id": "R-002", "title": "Session Hijack", "pasta_level": "Medium",
             "business_impact": "Medium", "mitigation_complexity": "Medium",
             "linked_vulnerabilities": ["V-002"]},
        ],
        "tactical_recommendations": [
            {"priority": "Immediate", "action": "Use parameterized queries", "addresses": ["R-001"]},
            {"priority": "Short-term", "action": "Add CSRF protection", "addresses": ["R-002"]},
        ],
    }


@pytest.fixture
def threat_model(threat_model_data):
    return ThreatModel.model_validate(threat_model_data)


@pytest.fixture
def scanned_files():
    return [
        ScannedFile(path="src/app.js",
                    content='const query = "SELECT * FROM users WHERE id=" + req.params.id;'),
        ScannedFile(path="src/routes.js", content='app.get("/api/users", handler);'),
    ]


@pytest.fixture
def high_confidence_fix():
    return FixProposal.model_validate({
        "confidence": "high",
        "explanation": "Added parameterized queries",
        "files": [{"path": "src/db.js", "original_content": "old", "fixed_content": "new"}],
        "notes": "Verify query results are unchanged",
    })
