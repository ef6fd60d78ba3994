"""
thr8fix

Automated remediation of threat-model findings: tracking issues and fix
pull requests on GitHub, created at most once per vulnerability.
"""

from .orchestrator import RemediationOrchestrator, build_orchestrator
from .state import RemediationPolicy, RemediationResult, ThreatModel

__all__ = [
    "RemediationOrchestrator",
    "RemediationPolicy",
    "RemediationResult",
    "ThreatModel",
    "build_orchestrator",
]
