"""Remediation orchestrator: route each finding to a PR, an issue, or nothing."""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from .errors import DecodeError, ExternalServiceError
from .fix_generator import FixGenerator
from .indexer import extract_vulnerabilities, index_by_vulnerability, index_recommendations
from .relevance import MAX_RELEVANT_FILES, select_relevant_files
from .router import classify_route
from .state import (
    Confidence,
    FindingState,
    FixProposal,
    Recommendation,
    RemediationError,
    RemediationPolicy,
    RemediationResult,
    Risk,
    Route,
    ScannedFile,
    ThreatModel,
    Vulnerability,
)
from .tools.github_host import SourceHost
from .tools.issues import LIST_PAGE_SIZE, create_issue_if_not_exists
from .tools.pull_requests import create_fix_pr

logger = logging.getLogger(__name__)


class RemediationCallback:
    """Progress hooks. The base class only logs; subclasses stream elsewhere."""

    async def on_phase(self, phase: str, description: str):
        logger.info(f"[PHASE] {phase}: {description}")

    async def on_finding(self, vuln_id: str, route: Route):
        pass

    async def on_state(self, vuln_id: str, state: FindingState):
        pass

    async def on_issue_created(self, vuln_id: str, issue):
        pass

    async def on_pr_created(self, vuln_id: str, pr):
        pass

    async def on_error(self, message: str, recoverable: bool = True):
        pass

    async def on_complete(self, result: RemediationResult):
        pass


class RemediationOrchestrator:
    """Processes findings strictly one at a time.

    Dedup lookups followed by creates are not atomic on the host, so findings
    never run concurrently. LLM calls are bounded by ``call_timeout``; GitHub
    requests by the host client's per-request timeout.
    """

    def __init__(
        self,
        host: SourceHost,
        fix_generator: FixGenerator,
        policy: RemediationPolicy,
        callback: Optional[RemediationCallback] = None,
        call_timeout: float = 300.0,
        top_k_files: int = MAX_RELEVANT_FILES,
        issue_page_size: int = LIST_PAGE_SIZE,
    ):
        self.host = host
        self.fix_generator = fix_generator
        self.policy = policy
        self.callback = callback or RemediationCallback()
        self.call_timeout = call_timeout
        self.top_k_files = top_k_files
        self.issue_page_size = issue_page_size

    async def remediate(
        self,
        threat_model: ThreatModel,
        scanned_files: list[ScannedFile],
    ) -> RemediationResult:
        result = RemediationResult()

        vulns = extract_vulnerabilities(threat_model)
        risks = index_by_vulnerability(threat_model.risk_analysis)
        recommendations = index_recommendations(
            threat_model.tactical_recommendations, threat_model.risk_analysis,
        )
        await self.callback.on_phase("remediating", f"{len(vulns)} finding(s) to process")
        logger.info(
            f"[START] {len(vulns)} vulnerabilities, {len(scanned_files)} scanned files, "
            f"auto_fix={self.policy.auto_fix}, create_issues={self.policy.create_issues}"
        )

        seen: set[str] = set()
        for vuln in vulns:
            if vuln.id in seen:
                logger.warning(f"[SKIP] Duplicate vulnerability id {vuln.id}, already processed")
                continue
            seen.add(vuln.id)

            try:
                state = await self._remediate_one(
                    vuln, risks.get(vuln.id), recommendations.get(vuln.id), scanned_files, result,
                )
            except Exception as e:
                logger.warning(f"[ERROR] Failed to remediate {vuln.id}: {e}")
                result.errors.append(RemediationError(vuln_id=vuln.id, error=str(e)))
                await self.callback.on_error(f"{vuln.id}: {e}", recoverable=True)
                state = FindingState.FAILED

            result.outcomes[vuln.id] = state
            await self.callback.on_state(vuln.id, state)

        logger.info(
            f"[DONE] issues={len(result.issues_created)}, prs={len(result.prs_created)}, "
            f"errors={len(result.errors)}"
        )
        await self.callback.on_complete(result)
        return result

    async def _remediate_one(
        self,
        vuln: Vulnerability,
        risk: Optional[Risk],
        recommendation: Optional[Recommendation],
        scanned_files: list[ScannedFile],
        result: RemediationResult,
    ) -> FindingState:
        route = classify_route(vuln, recommendation, self.policy)
        logger.info(f"[ROUTE] {vuln.id} ({vuln.severity.value if vuln.severity else 'unrated'}) -> {route.value}")
        await self.callback.on_finding(vuln.id, route)

        if route == Route.SKIP:
            return FindingState.SKIPPED
        if route == Route.ISSUE:
            return await self._issue_attempt(vuln, risk, recommendation, result)

        await self.callback.on_state(vuln.id, FindingState.PR_ATTEMPT)
        fix = await self._generate_fix(vuln, risk, recommendation, scanned_files)
        if fix is None or fix.confidence == Confidence.LOW:
            logger.warning(f"[FALLBACK] Low confidence fix for {vuln.id}, skipping PR")
            return await self._fallback(vuln, risk, recommendation, result)

        try:
            created = await self._call_host(create_fix_pr, self.host, vuln.id, fix, risk)
        except Exception as e:
            logger.warning(f"[FALLBACK] PR creation failed for {vuln.id}: {e}")
            return await self._fallback(vuln, risk, recommendation, result)

        if not created.created:
            return FindingState.PR_EXISTS
        result.prs_created.append(created.artifact)
        await self.callback.on_pr_created(vuln.id, created.artifact)
        return FindingState.PR_CREATED

    async def _fallback(self, vuln, risk, recommendation, result) -> FindingState:
        if not self.policy.create_issues:
            return FindingState.SKIPPED
        logger.info(f"[FALLBACK] Falling back to issue for {vuln.id}")
        await self.callback.on_state(vuln.id, FindingState.PR_FALLBACK_TO_ISSUE)
        return await self._issue_attempt(vuln, risk, recommendation, result)

    async def _issue_attempt(self, vuln, risk, recommendation, result) -> FindingState:
        await self.callback.on_state(vuln.id, FindingState.ISSUE_ATTEMPT)
        created = await self._call_host(
            create_issue_if_not_exists, self.host, vuln, risk, recommendation, self.issue_page_size,
        )
        if not created.created:
            return FindingState.ISSUE_EXISTS
        result.issues_created.append(created.artifact)
        await self.callback.on_issue_created(vuln.id, created.artifact)
        return FindingState.ISSUE_CREATED

    async def _generate_fix(self, vuln, risk, recommendation, scanned_files) -> Optional[FixProposal]:
        relevant = select_relevant_files(scanned_files, vuln, recommendation, self.top_k_files)
        if not relevant:
            logger.warning(f"[FIX] No relevant files found for {vuln.id}, skipping fix generation")
            return None
        logger.info(f"[FIX] {vuln.id}: {len(relevant)} relevant file(s): {[f.path for f in relevant]}")

        try:
            return await asyncio.wait_for(
                self.fix_generator.propose_fix(vuln, risk, recommendation, relevant),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[FIX] Fix generation timed out for {vuln.id} after {self.call_timeout}s")
        except (DecodeError, ExternalServiceError, ValidationError) as e:
            logger.warning(f"[FIX] Fix generation failed for {vuln.id}: {e}")
        return None

    async def _call_host(self, fn, *args):
        """Run blocking host work in a worker thread and wait for it to finish.

        Each GitHub request carries its own timeout, so the multi-request step is
        never abandoned halfway. On cancellation the step still runs to completion
        before CancelledError propagates, leaving no writes in flight.
        """
        work = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            logger.info(f"[CANCEL] Waiting for {fn.__name__} to finish before stopping")
            await asyncio.wait({work})
            raise


def build_orchestrator(settings, callback: Optional[RemediationCallback] = None) -> RemediationOrchestrator:
    """Wire the GitHub host and the LLM fix generator from settings."""
    from .fix_generator import LLMFixGenerator
    from .llm import LangChainCompletionService, init_llm
    from .tools.github_host import GitHubHost

    if not settings.github_token or not settings.github_repo:
        raise ValueError("github_token and github_repo (owner/repo) are required")

    host = GitHubHost(
        token=settings.github_token,
        repo=settings.github_repo,
        timeout=settings.github_timeout,
        per_page=settings.issue_page_size,
    )
    completion_service = LangChainCompletionService(
        init_llm(settings.model, max_tokens=settings.max_output_tokens)
    )
    fix_generator = LLMFixGenerator(
        completion_service,
        max_output_tokens=settings.max_output_tokens,
        max_continuations=settings.max_continuations,
    )
    return RemediationOrchestrator(
        host=host,
        fix_generator=fix_generator,
        policy=settings.policy(),
        callback=callback,
        call_timeout=settings.call_timeout,
        top_k_files=settings.top_k_files,
        issue_page_size=settings.issue_page_size,
    )
