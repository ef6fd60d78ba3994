"""Per-finding routing policy."""

from typing import Optional

from .state import Recommendation, RemediationPolicy, Route, Vulnerability


def has_elevated_priority(
    recommendation: Optional[Recommendation],
    policy: RemediationPolicy,
) -> bool:
    if recommendation is None:
        return not policy.require_recommendation_for_pr
    return recommendation.priority in policy.elevated_priorities


def classify_route(
    vuln: Vulnerability,
    recommendation: Optional[Recommendation],
    policy: RemediationPolicy,
) -> Route:
    """Decide pr / issue / skip. Pure: depends only on its arguments."""
    pr_eligible = vuln.severity is not None and vuln.severity in policy.pr_severities

    if policy.auto_fix and pr_eligible and has_elevated_priority(recommendation, policy):
        return Route.PR
    if policy.create_issues:
        return Route.ISSUE
    return Route.SKIP
