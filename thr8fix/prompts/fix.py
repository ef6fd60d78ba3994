"""Prompts for the fix-generation call."""

from typing import Optional

from ..state import Recommendation, Risk, ScannedFile, Vulnerability

FIX_SYSTEM_PROMPT = """You are a senior security engineer generating a minimal, targeted code fix for
a specific vulnerability.

You will receive:
- The vulnerability details (title, description, severity)
- The risk context (business impact, mitigation complexity)
- The recommended action
- Relevant source files from the repository

Produce a JSON response with this exact schema:
{
  "confidence": "high" | "medium" | "low",
  "explanation": "One sentence describing the fix",
  "files": [
    {
      "path": "relative/path/to/file",
      "original_content": "the original file content",
      "fixed_content": "the full fixed file content"
    }
  ],
  "notes": "Any caveats or manual steps needed (optional)"
}

# Rules

- Only modify files that need changing: minimal diff.
- Preserve existing code style and formatting.
- If you are not confident the fix is correct, set confidence to "low".
- Do NOT introduce new dependencies.
- Do NOT change unrelated code.
- Output ONLY valid JSON, no markdown fences.

# Security Guidelines

- NEVER introduce new security vulnerabilities.
- Prefer parameterized queries over string concatenation for SQL.
- Prefer output encoding over input filtering for XSS.
- Prefer allow-lists over deny-lists for input validation.
- Address root causes, not symptoms.
"""


def build_fix_user_message(
    vuln: Vulnerability,
    risk: Optional[Risk],
    recommendation: Optional[Recommendation],
    files: list[ScannedFile],
) -> str:
    severity = vuln.severity.value if vuln.severity else "Unrated"
    files_summary = "\n\n".join(f"--- {f.path} ---\n{f.content}" for f in files)

    sections = [
        "## Vulnerability",
        f"- **ID:** {vuln.id}",
        f"- **Title:** {vuln.title}",
        f"- **Description:** {vuln.description}",
        f"- **Severity:** {severity}",
        "",
    ]
    if risk:
        sections += [
            "## Risk",
            f"- **Level:** {risk.pasta_level}",
            f"- **Business Impact:** {risk.business_impact}",
            f"- **Fix Complexity:** {risk.mitigation_complexity}",
            "",
        ]
    if recommendation:
        sections += ["## Recommended Action", recommendation.action, ""]

    sections += [
        f"## Source Files ({len(files)} most relevant)",
        "",
        files_summary,
    ]
    return "\n".join(sections)
