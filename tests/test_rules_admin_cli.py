import json
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

RULES_YAML = """\
workspace_id: acme
rules:
  - id: commit-policy
    title: Commit policy
    content: Every commit message should include impact and rollback notes.
    tags: [commit, policy]
    priority: 2
  - id: naming
    title: Naming style
    content: Use kebab-case filenames for backend modules.
  - id: tone
    scope: user
    user_id: alice
    title: Answer tone
    content: Keep answers short.
"""


@pytest.fixture()
def rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(RULES_YAML, encoding="utf-8")
    return path


def _run_cli(args: list[str], check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "scripts/rules_admin.py", *args],
        capture_output=True,
        text=True,
        check=check,
        cwd=ROOT,
    )


def test_rules_admin_bundle_json(rules_file: Path):
    result = _run_cli(["bundle", "--rules", str(rules_file), "--user", "alice", "--query", "commit", "--json"])
    data = json.loads(result.stdout)

    assert data["routing"]["q_used"] == "commit"
    assert data["workspace_rules"][0]["id"] == "commit-policy"
    assert [rule["id"] for rule in data["user_rules"]] == ["tone"]


def test_rules_admin_bundle_text(rules_file: Path):
    result = _run_cli(["bundle", "--rules", str(rules_file), "--user", "alice"])

    assert result.stdout.startswith("## Global Rules")
    assert "Commit policy" in result.stdout
    assert "budget workspace=450 user=300" in result.stdout


def test_rules_admin_route_json(rules_file: Path):
    result = _run_cli(["route", "--rules", str(rules_file), "--query", "commit policy", "--mode", "keyword", "--json"])
    data = json.loads(result.stdout)

    assert data["routed_rule_ids"][0] == "commit-policy"
    assert data["score_breakdown"][0]["keyword"] == 1.0


def test_rules_admin_summarize_user_scope(rules_file: Path):
    result = _run_cli(["summarize", "--rules", str(rules_file), "--scope", "user", "--user", "alice"])

    assert result.stdout.startswith("User Global Rules Summary")
    assert "Answer tone" in result.stdout


def test_rules_admin_invalid_rules_file(tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text("rules:\n  - content: missing title\n", encoding="utf-8")

    result = _run_cli(["bundle", "--rules", str(path)], check=False)

    assert result.returncode == 2
    assert "title is required" in result.stderr


def test_rules_admin_without_command():
    result = _run_cli([], check=False)
    assert result.returncode == 1


def test_rules_admin_tolerates_bad_usage_count(tmp_path: Path):
    path = tmp_path / "rules.yaml"
    path.write_text(
        "rules:\n  - title: Seeded\n    content: Seed data.\n    usage_count: many\n",
        encoding="utf-8",
    )

    result = _run_cli(["summarize", "--rules", str(path)])

    assert "Seeded" in result.stdout
