"""
CLI for scopemate.

Usage examples:

    # Estimate a project definition
    python -m app.cli estimate data/samples/game_project.json

    # Same, with tasks coming from a CSV catalog, as JSON
    python -m app.cli estimate project.json --tasks-csv data/samples/tasks.csv --json

    # Show effective task counts only
    python -m app.cli flatten data/samples/game_project.json

    # Estimate the built-in game example
    python -m app.cli example
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# --- Make src/ importable ----------------------------------------------------

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from scopemate.config import configure_logging
from scopemate.data_io import load_project_from_json, load_task_catalog_from_csv
from scopemate.errors import ScopemateError
from scopemate.estimator import estimate_project, flatten
from scopemate.schema import ProjectStats, Requirement, Task


def example_project() -> Requirement:
    """
    A small game: two characters, three music tracks, two end screens.

    Estimates to 12h50m (Art 49%, Music 47%, Code 4%).
    """
    portrait = Task("Portrait", "Art", 60)
    sprite = Task("Sprite", "Art", 60)
    game_background = Task("GameBackground", "Art", 10)
    end_game_screen = Task("EndGameScreen", "Code", 15)
    bgm_track = Task("BGMTrack", "Music", 120)

    character = Requirement("character").add(portrait, 2).add(sprite, 1)
    end_screen = Requirement("endScreen").add(game_background, 1).add(end_game_screen, 1)

    return (
        Requirement("game")
        .add(character, 2)
        .add(bgm_track, 3)
        .add(end_screen, 2)
    )


def _load(command: str, args: argparse.Namespace) -> Requirement:
    definition_path = Path(args.definition_path).resolve()
    if not definition_path.exists():
        raise SystemExit(f"[{command}] Definition file not found: {definition_path}")

    csv_path = Path(args.tasks_csv).resolve() if args.tasks_csv else None
    if csv_path is not None and not csv_path.exists():
        raise SystemExit(f"[{command}] Task CSV not found: {csv_path}")

    try:
        catalog = load_task_catalog_from_csv(csv_path) if csv_path else None
        return load_project_from_json(definition_path, catalog=catalog)
    except ScopemateError as e:
        raise SystemExit(f"[{command}] {e}")


def format_report(stats: ProjectStats) -> str:
    """Render stats as plain-text tables."""
    lines = [f"Total time: {stats.total_time}", "", "By type:"]
    for type_stat in stats.type_stats:
        row = type_stat.to_dict()
        lines.append(f"  {row['type']:<20} {row['time']:>9} {row['percent']:>4}%")
    lines.extend(["", "By task:"])
    for task_stat in stats.task_stats:
        row = task_stat.to_dict()
        lines.append(
            f"  {row['name']:<20} {row['type']:<12} x{row['nb']:<5} "
            f"{row['totalTime']:>9} {row['percent']:>4}%"
        )
    return "\n".join(lines)


def _print_stats(command: str, root: Requirement, as_json: bool) -> None:
    try:
        stats = estimate_project(root)
    except ScopemateError as e:
        raise SystemExit(f"[{command}] {e}")

    if as_json:
        print(json.dumps(stats.to_dict(), indent=2))
    else:
        print(format_report(stats))


# --- Commands ----------------------------------------------------------------


def cmd_estimate(args: argparse.Namespace) -> None:
    """
    Estimate a project described in a JSON definition file.
    """
    root = _load("estimate", args)
    _print_stats("estimate", root, args.json)


def cmd_flatten(args: argparse.Namespace) -> None:
    """
    Print the effective count of every task in a project.
    """
    root = _load("flatten", args)
    try:
        flat_tasks = flatten(root)
    except ScopemateError as e:
        raise SystemExit(f"[flatten] {e}")

    for flat in flat_tasks:
        print(f"{flat.name}\t{flat.type}\t{flat.time}\tx{flat.nb}")


def cmd_example(args: argparse.Namespace) -> None:
    """
    Estimate the built-in example project.
    """
    _print_stats("example", example_project(), args.json)


# --- Main --------------------------------------------------------------------


def _add_definition_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "definition_path",
        help="Path to a project definition JSON (e.g., data/samples/game_project.json).",
    )
    parser.add_argument(
        "--tasks-csv",
        default=None,
        help="Optional CSV task catalog (columns: name, type, time).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="scopemate CLI – estimate project time from nested requirements."
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: SM_LOG_LEVEL or WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # estimate
    est_p = subparsers.add_parser(
        "estimate",
        help="Estimate total and per-type time of a project definition.",
    )
    _add_definition_args(est_p)
    est_p.add_argument("--json", action="store_true", help="Print the report as JSON.")
    est_p.set_defaults(func=cmd_estimate)

    # flatten
    flat_p = subparsers.add_parser(
        "flatten",
        help="Print the effective count of every task.",
    )
    _add_definition_args(flat_p)
    flat_p.set_defaults(func=cmd_flatten)

    # example
    ex_p = subparsers.add_parser(
        "example",
        help="Estimate the built-in game example.",
    )
    ex_p.add_argument("--json", action="store_true", help="Print the report as JSON.")
    ex_p.set_defaults(func=cmd_example)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
