#!/usr/bin/env python3
"""Global rules inspection CLI.

Usage examples:
  python scripts/rules_admin.py bundle --rules rules.yaml --user alice --query "commit policy"
  python scripts/rules_admin.py route --rules rules.yaml --query "security audit" --json
  python scripts/rules_admin.py summarize --rules rules.yaml --scope user --user alice
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from ruleroute.core.config import RuleEngineSettings, load_settings
from ruleroute.core.exceptions import ValidationError
from ruleroute.core.logging_config import setup_logging
from ruleroute.core.models import RoutingMode, RuleScope
from ruleroute.rules.router import pick_routed_ids, route_rules
from ruleroute.rules.service import RuleBundleService
from ruleroute.rules.store import InMemoryRuleStore


def _load(args: argparse.Namespace) -> tuple[InMemoryRuleStore, RuleEngineSettings]:
    settings = load_settings(args.settings) if args.settings else RuleEngineSettings()
    store = InMemoryRuleStore.from_yaml(args.rules, workspace_id=args.workspace)
    return store, settings


def _workspace_id(store: InMemoryRuleStore, args: argparse.Namespace) -> str:
    return args.workspace or store.default_workspace_id


def cmd_bundle(args: argparse.Namespace) -> int:
    store, settings = _load(args)
    service = RuleBundleService(store, settings)
    bundle = service.build_bundle(
        _workspace_id(store, args),
        args.user,
        query=args.query,
        context_hint=args.context_hint,
        total_budget=args.budget,
        include_routing_debug=args.debug,
    )

    if args.json:
        print(json.dumps(bundle.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False))
        return 0

    print(bundle.to_context_block())
    print()
    debug = bundle.debug
    print(
        f"budget workspace={debug.workspace_budget_tokens} user={debug.user_budget_tokens} | "
        f"selected {debug.workspace_selected_count}+{debug.user_selected_count} | "
        f"omitted {debug.workspace_omitted_count}+{debug.user_omitted_count}"
    )
    for warning in bundle.warnings:
        print(f"[{warning.level.value}] {warning.message}")
    return 0


def cmd_route(args: argparse.Namespace) -> int:
    store, settings = _load(args)
    scope = RuleScope(args.scope)
    user_id = args.user if scope == RuleScope.USER else None
    rules = store.list_enabled_rules(_workspace_id(store, args), scope, user_id)
    mode = RoutingMode(args.mode) if args.mode else settings.routing_mode

    breakdowns = route_rules(rules, args.query, mode, scope)
    routed = pick_routed_ids(breakdowns, settings.routing_top_k, settings.routing_min_score)
    breakdowns.sort(key=lambda score: score.final, reverse=True)

    if args.json:
        data = {
            "routed_rule_ids": routed,
            "score_breakdown": [score.model_dump(mode="json") for score in breakdowns],
        }
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return 0

    if not breakdowns:
        print("(no rules or empty query)")
        return 0

    titles = {rule.id: rule.title for rule in rules}
    for score in breakdowns:
        marker = "*" if score.rule_id in routed else " "
        print(f"{marker} {score.final:.3f}  {score.rule_id} :: {titles.get(score.rule_id, '')}")
        print(
            f"    semantic={score.semantic:.3f} keyword={score.keyword:.3f} "
            f"priority={score.priority:.2f} recency={score.recency:.2f} "
            f"length_penalty={score.length_penalty:.3f}"
        )
    return 0


def cmd_summarize(args: argparse.Namespace) -> int:
    store, settings = _load(args)
    service = RuleBundleService(store, settings)
    summary = service.summarize(
        _workspace_id(store, args),
        RuleScope(args.scope),
        user_id=args.user,
        actor_user_id=args.user,
    )
    if args.json:
        print(json.dumps(summary.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False))
        return 0
    print(summary.summary_text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect global rule selection and routing.")
    parser.add_argument("--verbose", action="store_true", help="Log engine decisions to stderr")
    sub = parser.add_subparsers(dest="command")

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--rules", required=True, help="YAML rules file")
        p.add_argument("--settings", help="YAML settings overrides")
        p.add_argument("--workspace", help="Workspace id (default: from rules file)")
        p.add_argument("--user", default="default", help="User id for user-scope rules")
        p.add_argument("--json", action="store_true")

    bundle_parser = sub.add_parser("bundle", help="Build a two-scope rule bundle")
    add_common(bundle_parser)
    bundle_parser.add_argument("--query", default=None)
    bundle_parser.add_argument("--context-hint", default=None, help="Fallback routing text, e.g. a file path")
    bundle_parser.add_argument("--budget", type=int, default=None, help="Total token budget override")
    bundle_parser.add_argument("--debug", action="store_true", help="Include routing score breakdown")
    bundle_parser.set_defaults(func=cmd_bundle)

    route_parser = sub.add_parser("route", help="Show routing scores for one scope")
    add_common(route_parser)
    route_parser.add_argument("--query", required=True)
    route_parser.add_argument("--scope", choices=[s.value for s in RuleScope], default="workspace")
    route_parser.add_argument("--mode", choices=[m.value for m in RoutingMode], default=None)
    route_parser.set_defaults(func=cmd_route)

    summarize_parser = sub.add_parser("summarize", help="Preview a scope summary")
    add_common(summarize_parser)
    summarize_parser.add_argument("--scope", choices=[s.value for s in RuleScope], default="workspace")
    summarize_parser.set_defaults(func=cmd_summarize)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    setup_logging(level="DEBUG" if args.verbose else "WARNING", log_to_file=False, service_name="rules-admin")
    try:
        return args.func(args)
    except ValidationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
