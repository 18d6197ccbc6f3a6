"""CLI for inspecting and optimizing a race schedule from the terminal."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from race_planner.adapters.dataset_loader import DatasetError, load_dataset
from race_planner.adapters.observability import configure_runtime_logging
from race_planner.api.contracts import (
    ChecklistSnapshot,
    SnapshotError,
    load_snapshot_json,
    save_snapshot_json,
)
from race_planner.application.session import NeedsConfirmation, SchedulingSession
from race_planner.core.turns import direction_label, season_of

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Define CLI flags for schedule inspection."""
    parser = argparse.ArgumentParser(description="Print a race schedule with warnings and totals.")
    parser.add_argument("--data-dir", default="", help="Directory holding the data files.")
    parser.add_argument("--snapshot", default="", help="Saved checklist JSON to load.")
    parser.add_argument("--profile", default="", help="Profile to select before printing.")
    parser.add_argument(
        "--keep-optional",
        action="store_true",
        help="Keep planned optional races when switching profile.",
    )
    parser.add_argument(
        "--no-mandatory", action="store_true", help="Plan without career races."
    )
    parser.add_argument(
        "--optimize", action="store_true", help="Replace optional races with the best schedule."
    )
    parser.add_argument("--bonus", type=float, default=None, help="Reward bonus percent.")
    parser.add_argument("--epithets", action="store_true", help="Print epithet progress.")
    parser.add_argument("--output", default="", help="Write the resulting checklist JSON here.")
    parser.add_argument("--name", default="", help="Checklist name used with --output.")
    return parser


def _print_schedule(session: SchedulingSession) -> None:
    warnings = session.warnings()
    mandatory = session.mandatory
    schedule = session.schedule()
    if not schedule:
        print("No races scheduled.")
        return
    for event in schedule:
        markers = []
        if event.event_id in mandatory:
            markers.append("career")
        if event.event_id in session.state.auto_substituted:
            markers.append("substituted")
        if event.event_id in warnings:
            markers.append("WARNING")
        status = session.state.record(event.event_id).status
        reward = event.reward_first_place if event.reward_first_place is not None else "-"
        suffix = f" [{', '.join(markers)}]" if markers else ""
        print(
            f"T{event.turn:02d} {event.slot.label if event.slot else event.raw_date_label}"
            f" | {event.grade} {event.name} | {event.surface} {event.distance_meters}m"
            f" | reward {reward} | {status}{suffix}"
        )


def _print_next(session: SchedulingSession) -> None:
    view = session.next_event()
    if view is None:
        return
    event = view.event
    season = season_of(event.slot) if event.slot is not None else "N/A"
    print(
        f"Next: {event.name} in {view.turns_until} free turn(s)"
        f" ({season}, {direction_label(event.direction)})"
    )
    for upcoming in view.upcoming:
        print(f"  then {upcoming.event.name} after {upcoming.turns_after_previous} turn(s)")


def main(argv: list[str] | None = None) -> None:
    """Load data and an optional checklist, apply the requested actions and print."""
    configure_runtime_logging()
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)

    data_dir = Path(str(parsed.data_dir)) if str(parsed.data_dir).strip() else None
    try:
        dataset = load_dataset(data_dir)
    except DatasetError as exc:
        parser.exit(status=2, message=f"error: {exc}\n")
    session = SchedulingSession(
        dataset.calendar, dataset.profiles, epithet_definitions=dataset.epithets
    )

    snapshot_name = str(parsed.name).strip() or "cli"
    if str(parsed.snapshot).strip():
        try:
            snapshot = load_snapshot_json(Path(str(parsed.snapshot)))
        except (OSError, SnapshotError) as exc:
            parser.exit(status=2, message=f"error: {exc}\n")
        session.restore(snapshot.to_memento())
        snapshot_name = str(parsed.name).strip() or snapshot.name
    if parsed.no_mandatory:
        session.set_no_mandatory_mode(True, confirm=True)
    if str(parsed.profile).strip():
        if parsed.profile not in session.profile_names():
            parser.exit(status=2, message=f"error: unknown profile '{parsed.profile}'\n")
        result = session.select_profile(
            str(parsed.profile), keep_optional=bool(parsed.keep_optional)
        )
        if isinstance(result, NeedsConfirmation):
            print(result.message)
        elif result.policy_relaxed:
            print("Aptitude filters were adjusted to show all kept races.")
    if parsed.bonus is not None:
        session.set_reward_bonus(float(parsed.bonus))
    if parsed.optimize:
        optimized = session.maximize_reward()
        print(
            f"Optimizer picked {len(optimized.event_ids)} race(s),"
            f" reward {optimized.total_reward}."
        )

    _print_schedule(session)
    _print_next(session)
    base, estimated = session.estimated_reward()
    print(session.status_text())
    print(f"Warnings: {len(session.warnings())} | Base reward: {base} | Estimated: {estimated}")
    if parsed.epithets:
        for status in session.epithet_statuses():
            line = (
                f"Epithet {status.name}: {status.status}"
                f" ({status.completed_count}/{status.required_count})"
            )
            if status.conflict_reason:
                line += f" {status.conflict_reason}"
            print(line)

    if str(parsed.output).strip():
        output_path = Path(str(parsed.output))
        save_snapshot_json(
            output_path, ChecklistSnapshot.from_memento(snapshot_name, session.snapshot())
        )
        print(f"Wrote checklist: {output_path}")
    logger.info("cli.plan_done events=%s", len(session.state.effective))


if __name__ == "__main__":
    main()
