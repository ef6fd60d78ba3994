"""Cross-reference maps between vulnerabilities, risks and recommendations.

When several risks (or recommendations) point at the same vulnerability the
last one processed wins.
"""

from .state import Recommendation, Risk, ThreatModel, Vulnerability


def extract_vulnerabilities(threat_model: ThreatModel) -> list[Vulnerability]:
    return threat_model.vulnerabilities()


def index_by_vulnerability(risks: list[Risk]) -> dict[str, Risk]:
    """Map vuln id -> risk linking it."""
    index: dict[str, Risk] = {}
    for risk in risks:
        for vuln_id in risk.linked_vulnerabilities:
            index[vuln_id] = risk
    return index


def index_recommendations(
    recommendations: list[Recommendation],
    risks: list[Risk],
) -> dict[str, Recommendation]:
    """Map vuln id -> recommendation, going through the risks it addresses."""
    risk_to_vulns: dict[str, list[str]] = {}
    for risk in risks:
        for vuln_id in risk.linked_vulnerabilities:
            risk_to_vulns.setdefault(risk.risk_id, []).append(vuln_id)

    index: dict[str, Recommendation] = {}
    for rec in recommendations:
        for risk_id in rec.addresses:
            for vuln_id in risk_to_vulns.get(risk_id, []):
                index[vuln_id] = rec
    return index
