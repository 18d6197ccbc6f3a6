from __future__ import annotations

import os
from pathlib import Path

import pytest

from race_planner.api.contracts import load_snapshot_json
from race_planner.cli import api as api_cli
from race_planner.cli import plan as plan_cli


def test_plan_cli_prints_career_schedule(capsys: pytest.CaptureFixture[str]) -> None:
    plan_cli.main(["--profile", "Special Week", "--bonus", "10"])
    out = capsys.readouterr().out
    assert (
        "T31 Classic Year - April - Early | G1 Satsuki Sho | Turf 2000m | reward 14000"
        " | not_started [career]" in out
    )
    assert "Next: Satsuki Sho in 30 free turn(s) (Spring, Right-Handed)" in out
    assert "0 / 4 races done, 0 won." in out
    assert "Warnings: 0 | Base reward: 70000 | Estimated: 77000" in out


def test_plan_cli_optimizes_and_writes_checklist(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output = tmp_path / "plans" / "derby.json"
    plan_cli.main(
        ["--profile", "Special Week", "--optimize", "--output", str(output), "--name", "Derby"]
    )
    out = capsys.readouterr().out
    assert "Optimizer picked" in out
    assert f"Wrote checklist: {output}" in out
    snapshot = load_snapshot_json(output)
    assert snapshot.name == "Derby"
    assert snapshot.profile_name == "Special Week"
    assert {"10", "12", "18", "35"} <= set(snapshot.selected_event_ids)


def test_plan_cli_reloads_snapshot_and_reports_epithets(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    saved = tmp_path / "special.json"
    plan_cli.main(["--profile", "Special Week", "--output", str(saved)])
    capsys.readouterr()

    plan_cli.main(["--snapshot", str(saved), "--epithets"])
    out = capsys.readouterr().out
    assert "Epithet Classic Triple Crown: complete (3/3)" in out
    assert "[career]" in out


def test_plan_cli_no_mandatory_mode_starts_empty(capsys: pytest.CaptureFixture[str]) -> None:
    plan_cli.main(["--no-mandatory", "--profile", "Gold Ship"])
    out = capsys.readouterr().out
    assert "No races scheduled." in out
    assert "Warnings: 0 | Base reward: 0 | Estimated: 0" in out


def test_plan_cli_rejects_unknown_profile() -> None:
    with pytest.raises(SystemExit) as excinfo:
        plan_cli.main(["--profile", "Nobody"])
    assert excinfo.value.code == 2


def test_plan_cli_rejects_missing_data_dir(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        plan_cli.main(["--data-dir", str(tmp_path / "missing")])
    assert excinfo.value.code == 2


def test_api_cli_calls_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []

    def fake_run(app: str, host: str, port: int, reload: bool) -> None:
        calls.append({"app": app, "host": host, "port": port, "reload": reload})

    monkeypatch.setattr("race_planner.cli.api.uvicorn.run", fake_run)
    api_cli.main(["--host", "0.0.0.0", "--port", "9000", "--reload"])

    assert calls == [
        {
            "app": "race_planner.api.app:app",
            "host": "0.0.0.0",
            "port": 9000,
            "reload": True,
        }
    ]


def test_api_cli_sets_path_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RACE_PLANNER_DB_PATH", "")
    monkeypatch.setenv("RACE_PLANNER_DATA_DIR", "")
    monkeypatch.setattr("race_planner.cli.api.uvicorn.run", lambda *args, **kwargs: None)
    api_cli.main(["--db-path", "work/local/custom.db", "--data-dir", "data/full"])
    assert os.environ["RACE_PLANNER_DB_PATH"] == "work/local/custom.db"
    assert os.environ["RACE_PLANNER_DATA_DIR"] == "data/full"
