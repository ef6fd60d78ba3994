#!/usr/bin/env python3
"""
thr8fix - Remediation Entry Point
=================================
Turns a threat model into GitHub issues and fix pull requests.

Reads the threat model and the scanned source files produced by earlier
pipeline stages, routes every vulnerability and writes the aggregated
result as JSON.

Usage:
    GITHUB_TOKEN=... ANTHROPIC_API_KEY=... \\
    thr8fix --threat-model threat-model.json --scanned-files files.json \\
            --repo owner/name --auto-fix --output remediation.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .orchestrator import build_orchestrator
from .project_settings import settings_from_env
from .state import RemediationResult, ScannedFile, ThreatModel


def load_threat_model(path: Path) -> ThreatModel:
    with open(path, "r") as f:
        return ThreatModel.model_validate(json.load(f))


def load_scanned_files(path: Path) -> list[ScannedFile]:
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("files", [])
    return [ScannedFile.model_validate(item) for item in data]


def save_result(result: RemediationResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result.model_dump(mode="json", by_alias=True), f, indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thr8fix",
        description="Open issues and fix PRs for threat-model findings.",
    )
    parser.add_argument("--threat-model", type=Path, required=True,
                        help="Threat model JSON (attack_surfaces, risk_analysis, ...)")
    parser.add_argument("--scanned-files", type=Path,
                        help="JSON list of {path, content} source files")
    parser.add_argument("--repo", help="Target repository owner/name (default: $GITHUB_REPOSITORY)")
    parser.add_argument("--create-issues", action=argparse.BooleanOptionalAction, default=None,
                        help="Open tracking issues (default: $THR8_CREATE_ISSUES or true)")
    parser.add_argument("--auto-fix", action=argparse.BooleanOptionalAction, default=None,
                        help="Propose fix PRs (default: $THR8_AUTO_FIX or false)")
    parser.add_argument("--pr-severity",
                        help="Comma-separated severities eligible for PRs (default: critical,high)")
    parser.add_argument("--model", help="LLM model identifier")
    parser.add_argument("--output", type=Path, default=Path("remediation.json"),
                        help="Where to write the result JSON")
    parser.add_argument("--fail-on-errors", action="store_true",
                        help="Exit non-zero when any finding failed")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def run(args: argparse.Namespace) -> RemediationResult:
    settings = settings_from_env()
    overrides = {}
    if args.repo:
        overrides["github_repo"] = args.repo
    if args.create_issues is not None:
        overrides["create_issues"] = args.create_issues
    if args.auto_fix is not None:
        overrides["auto_fix"] = args.auto_fix
    if args.pr_severity:
        overrides["pr_severities"] = [s.strip() for s in args.pr_severity.split(",") if s.strip()]
    if args.model:
        overrides["model"] = args.model
    settings = settings.model_copy(update=overrides)

    threat_model = load_threat_model(args.threat_model)
    scanned_files = load_scanned_files(args.scanned_files) if args.scanned_files else []

    print("\n" + "=" * 70)
    print("           thr8fix - Threat Model Remediation")
    print("=" * 70)
    print(f"  Repository:     {settings.github_repo}")
    print(f"  Findings:       {len(threat_model.vulnerabilities())}")
    print(f"  Scanned files:  {len(scanned_files)}")
    print(f"  Create issues:  {settings.create_issues}")
    print(f"  Auto-fix:       {settings.auto_fix} (severities: {', '.join(settings.pr_severities)})")
    print("=" * 70 + "\n")

    orchestrator = build_orchestrator(settings)
    result = asyncio.run(orchestrator.remediate(threat_model, scanned_files))

    save_result(result, args.output)

    print("\n" + "=" * 70)
    print(f"  Issues created: {len(result.issues_created)}")
    for issue in result.issues_created:
        print(f"    [+] #{issue.number} {issue.title}")
    print(f"  PRs created:    {len(result.prs_created)}")
    for pr in result.prs_created:
        print(f"    [+] #{pr.number} {pr.title}")
    print(f"  Errors:         {len(result.errors)}")
    for err in result.errors:
        print(f"    [!] {err.vuln_id}: {err.error}")
    print(f"  Result written: {args.output}")
    print("=" * 70)
    return result


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = run(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"[!] ERROR: {e}")
        return 2

    if args.fail_on_errors and result.errors:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
