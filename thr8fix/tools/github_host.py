"""GitHubHost: the source-hosting operations the remediation flow needs."""

import logging
from itertools import islice
from typing import Optional, Protocol

from github import Auth, Github, GithubException, UnknownObjectException

from ..errors import ExternalServiceError, RefExistsError
from ..state import ArtifactRef, LabelStatus

logger = logging.getLogger(__name__)


class SourceHost(Protocol):
    owner: str
    repo_name: str

    def search_issues(self, query: str, limit: int = 1) -> list[dict]: ...

    def list_open_issues(self, label: str, limit: int = 100) -> list[dict]: ...

    def get_or_create_label(self, name: str, color: str) -> LabelStatus: ...

    def create_issue(self, title: str, body: str, labels: list[str]) -> ArtifactRef: ...

    def find_open_pulls(self, head: str) -> list[ArtifactRef]: ...

    def default_branch(self) -> str: ...

    def branch_sha(self, branch: str) -> str: ...

    def create_branch(self, branch: str, sha: str) -> None: ...

    def force_update_branch(self, branch: str, sha: str) -> None: ...

    def file_sha(self, path: str, branch: str) -> Optional[str]: ...

    def put_file(self, path: str, content: str, message: str, branch: str,
                 sha: Optional[str] = None) -> None: ...

    def create_pull(self, title: str, body: str, head: str, base: str) -> ArtifactRef: ...


def _ref(obj) -> ArtifactRef:
    return ArtifactRef(number=obj.number, title=obj.title or "", url=obj.html_url or "")


def _issue_dict(issue) -> dict:
    return {
        "number": issue.number,
        "title": issue.title or "",
        "url": issue.html_url or "",
        "body": issue.body or "",
    }


def _wrap(action: str, e: GithubException) -> ExternalServiceError:
    return ExternalServiceError(f"GitHub {action} failed ({e.status}): {e.data}", status=e.status)


class GitHubHost:
    """PyGithub-backed SourceHost for a single repository."""

    def __init__(self, token: str, repo: str, timeout: int = 30, per_page: int = 100,
                 client: Optional[Github] = None):
        self.full_name = repo  # owner/repo
        self.owner, _, self.repo_name = repo.partition("/")
        self.gh = client or Github(auth=Auth.Token(token), timeout=timeout, per_page=per_page)
        self._repo = None

    @property
    def repo(self):
        if self._repo is None:
            try:
                self._repo = self.gh.get_repo(self.full_name)
            except GithubException as e:
                raise _wrap(f"get repo {self.full_name}", e) from e
        return self._repo

    # -- issues ---------------------------------------------------------------

    def search_issues(self, query: str, limit: int = 1) -> list[dict]:
        try:
            return [_issue_dict(i) for i in islice(self.gh.search_issues(query), limit)]
        except GithubException as e:
            raise _wrap("issue search", e) from e

    def list_open_issues(self, label: str, limit: int = 100) -> list[dict]:
        try:
            issues = self.repo.get_issues(state="open", labels=[label])
            return [_issue_dict(i) for i in islice(issues, limit)]
        except GithubException as e:
            raise _wrap("issue listing", e) from e

    def get_or_create_label(self, name: str, color: str) -> LabelStatus:
        try:
            self.repo.get_label(name)
            return LabelStatus.EXISTING
        except UnknownObjectException:
            pass
        except GithubException as e:
            raise _wrap(f"get label {name}", e) from e

        try:
            self.repo.create_label(name=name, color=color)
            return LabelStatus.CREATED
        except GithubException as e:
            if e.status == 422:
                logger.info(f"[LABEL] '{name}' was created concurrently")
                return LabelStatus.CONFLICT
            raise _wrap(f"create label {name}", e) from e

    def create_issue(self, title: str, body: str, labels: list[str]) -> ArtifactRef:
        try:
            return _ref(self.repo.create_issue(title=title, body=body, labels=labels))
        except GithubException as e:
            raise _wrap("create issue", e) from e

    # -- pull requests --------------------------------------------------------

    def find_open_pulls(self, head: str) -> list[ArtifactRef]:
        try:
            return [_ref(p) for p in self.repo.get_pulls(state="open", head=head)]
        except GithubException as e:
            raise _wrap("pull listing", e) from e

    def default_branch(self) -> str:
        return self.repo.default_branch

    def branch_sha(self, branch: str) -> str:
        try:
            return self.repo.get_git_ref(f"heads/{branch}").object.sha
        except GithubException as e:
            raise _wrap(f"get ref heads/{branch}", e) from e

    def create_branch(self, branch: str, sha: str) -> None:
        try:
            self.repo.create_git_ref(ref=f"refs/heads/{branch}", sha=sha)
        except GithubException as e:
            if e.status == 422:
                raise RefExistsError(f"Branch {branch} already exists", status=422) from e
            raise _wrap(f"create ref {branch}", e) from e

    def force_update_branch(self, branch: str, sha: str) -> None:
        try:
            self.repo.get_git_ref(f"heads/{branch}").edit(sha=sha, force=True)
        except GithubException as e:
            raise _wrap(f"update ref {branch}", e) from e

    def file_sha(self, path: str, branch: str) -> Optional[str]:
        try:
            contents = self.repo.get_contents(path, ref=branch)
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise _wrap(f"get contents {path}", e) from e
        return contents.sha

    def put_file(self, path: str, content: str, message: str, branch: str,
                 sha: Optional[str] = None) -> None:
        try:
            if sha:
                self.repo.update_file(path, message, content, sha, branch=branch)
            else:
                self.repo.create_file(path, message, content, branch=branch)
        except GithubException as e:
            raise _wrap(f"commit {path}", e) from e

    def create_pull(self, title: str, body: str, head: str, base: str) -> ArtifactRef:
        try:
            return _ref(self.repo.create_pull(title=title, body=body, head=head, base=base))
        except GithubException as e:
            raise _wrap("create pull request", e) from e
