"""
Command-line tooling for inspecting SideQuest session state.

Reads what the engine persisted in the data directory and prints it the way
the AI would see it. Nothing here is needed at runtime.
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import get_data_dir, load_config
from .journey.replay import load_trace, replay_trace
from .state.manager import SessionContextManager
from .state.schema import Campaign, JourneyStats
from .state.store import SessionContextStore

console = Console()


def _load_campaign(path: str | None) -> Campaign | None:
    if not path:
        return None
    try:
        return Campaign.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        console.print(f"[yellow]Ignoring campaign file {path}: {e}[/yellow]")
        return None


def _load_journey(path: str | None, config) -> JourneyStats | None:
    if not path:
        return None
    return replay_trace(load_trace(path), config=config)


def _open(args) -> SessionContextManager | None:
    """Open the stored context for args.campaign_id without creating one."""
    data_dir = get_data_dir(args.data_dir)
    store = SessionContextStore(data_dir)

    if not store.exists(args.campaign_id):
        console.print(f"[red]No session context for campaign {args.campaign_id}[/red]")
        return None

    config = load_config(data_dir)
    return SessionContextManager(
        args.campaign_id,
        store,
        campaign=_load_campaign(getattr(args, "campaign", None)),
        journey_stats=_load_journey(getattr(args, "journey", None), config),
        config=config,
    )


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def cmd_list(args) -> int:
    store = SessionContextStore(get_data_dir(args.data_dir))
    campaigns = store.list_campaigns()

    if not campaigns:
        console.print("[dim]No session contexts found[/dim]")
        return 0

    table = Table(title="Session Contexts")
    table.add_column("Campaign")
    table.add_column("Quests", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Updated")

    for campaign_id in campaigns:
        context = store.load(campaign_id)
        if context is None:
            table.add_row(campaign_id, "-", "-", "[red]unreadable[/red]")
            continue
        table.add_row(
            campaign_id,
            str(len(context.quest_history)),
            f"{context.patterns.success_rate * 100:.0f}%",
            context.updated_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    return 0


def cmd_show(args) -> int:
    manager = _open(args)
    if manager is None:
        return 1

    prompt = manager.get_context_prompt()
    if not prompt:
        console.print("[dim]No quest history yet[/dim]")
        return 0

    console.print(prompt, markup=False, highlight=False, soft_wrap=True)
    return 0


def cmd_hint(args) -> int:
    manager = _open(args)
    if manager is None:
        return 1

    hint = manager.get_verification_hint(args.quest)
    if not hint:
        console.print("[dim]No quest history yet[/dim]")
        return 0

    console.print(hint, markup=False, highlight=False, soft_wrap=True)
    return 0


def cmd_tokens(args) -> int:
    manager = _open(args)
    if manager is None:
        return 1

    breakdown = manager.get_token_breakdown()

    table = Table(title=f"Context Tokens: {args.campaign_id}", box=None)
    table.add_column("Category", style="dim")
    table.add_column("Tokens", justify="right")

    for category, tokens in breakdown.to_dict().items():
        if category == "total":
            continue
        table.add_row(category.replace("_", " "), f"{tokens:,}")
    table.add_row("[bold]total[/bold]", f"[bold]{breakdown.total:,}[/bold]")

    console.print(table)
    return 0


def cmd_replay(args) -> int:
    config = load_config(get_data_dir(args.data_dir))
    samples = load_trace(args.trace)
    if not samples:
        console.print(f"[red]No usable samples in {args.trace}[/red]")
        return 1

    stats = replay_trace(samples, config=config)

    if args.json:
        print(stats.model_dump_json(indent=2))
        return 0

    table = Table(title=f"Journey: {args.trace}", box=None)
    table.add_column("", style="dim")
    table.add_column("")
    table.add_row("Samples", str(len(samples)))
    table.add_row("Points recorded", str(len(stats.path_points)))
    table.add_row("Distance", f"{stats.total_distance_traveled:.3f} km")
    table.add_row("Duration", f"{stats.duration_minutes} min")
    table.add_row("Quests completed", str(len(stats.quest_completion_times)))
    console.print(table)
    return 0


def cmd_reset(args) -> int:
    store = SessionContextStore(get_data_dir(args.data_dir))
    if not store.exists(args.campaign_id):
        console.print(f"[dim]Nothing stored for {args.campaign_id}[/dim]")
        return 0

    SessionContextManager(args.campaign_id, store).reset_context()
    console.print(f"[green]Cleared session context:[/green] {args.campaign_id}")
    return 0


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sidequest",
        description="SideQuest - inspect session context and journey telemetry",
    )
    parser.add_argument(
        "--data-dir",
        help="Directory holding saved contexts (default: $SIDEQUEST_DATA_DIR or ./sidequest_data)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List campaigns with a stored context")
    p.set_defaults(func=cmd_list)

    for name, func, help_text in (
        ("show", cmd_show, "Print the composed context prompt"),
        ("hint", cmd_hint, "Print the verification hint"),
        ("tokens", cmd_tokens, "Show the token breakdown"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("campaign_id")
        p.add_argument("--campaign", help="Campaign snapshot JSON file")
        p.add_argument("--journey", help="GPS trace JSON file to include as the journey")
        p.set_defaults(func=func)
        if name == "hint":
            p.add_argument("--quest", help="Quest ID (default: the campaign's current quest)")

    p = sub.add_parser("replay", help="Replay a GPS trace through the journey tracker")
    p.add_argument("trace")
    p.add_argument("--json", action="store_true", help="Print the final stats as JSON")
    p.set_defaults(func=cmd_replay)

    p = sub.add_parser("reset", help="Clear a stored session context")
    p.add_argument("campaign_id")
    p.set_defaults(func=cmd_reset)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
