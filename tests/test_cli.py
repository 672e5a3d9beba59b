from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from pal_reachability.__main__ import main


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    document = {
        "pals": [
            {"id": "1", "name": "Lamball", "breeding_power": 1470},
            {"id": "2", "name": "Cattiva", "breeding_power": 1460},
            {"id": "3", "name": "Chikipi", "breeding_power": 1500},
            {"id": "4", "name": "Lifmunk", "breeding_power": 1430},
            {"id": "9", "name": "Unreachable", "breeding_power": 10},
        ],
        "breeding": [
            {"parent1": "1", "parent2": "2", "child": "3"},
            {"parent1": "2", "parent2": "3", "child": "4"},
        ],
    }
    path = tmp_path / "breeding.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_cli_lists_reachable_pals(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--db", str(db_path), "--owned", "1", "2", "--max-workers", "2"]) == 0
    out = capsys.readouterr().out
    assert "reachable_count=4" in out
    assert "owned_count=2" in out
    assert "Lifmunk" in out
    assert "Unreachable" not in out


def test_cli_json_only_new_sorted_by_rarity(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--db", str(db_path), "--owned", "1", "2", "--only-new", "--sort", "RARITY", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [pal["name"] for pal in payload["pals"]] == ["Lifmunk", "Chikipi"]
    assert payload["reachable_count"] == 4
    assert payload["new_count"] == 2


def test_cli_single_instance_reaches_only_itself(db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--db", str(db_path), "--owned", "1", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["reachable_count"] == 1


def test_cli_reads_owned_file(db_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    owned_file = tmp_path / "owned.json"
    owned_file.write_text(json.dumps(["1", "2"]), encoding="utf-8")
    assert main(["--db", str(db_path), "--owned-file", str(owned_file), "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["reachable_count"] == 4


@pytest.mark.parametrize(
    "extra",
    [
        ["--owned", "77"],
        ["--owned", "not-an-id"],
        ["--owned", "1", "--max-workers", "0"],
        ["--owned", "1", "2", "--timeout", "-1"],
        ["--owned", "1", "2", "--timeout", "nan"],
    ],
)
def test_cli_rejects_bad_input(db_path: Path, extra: list[str]) -> None:
    assert main(["--db", str(db_path), *extra]) == 1


def test_cli_rejects_missing_or_malformed_files(db_path: Path, tmp_path: Path) -> None:
    assert main(["--db", str(tmp_path / "missing.json"), "--owned", "1"]) == 1
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    assert main(["--db", str(broken), "--owned", "1"]) == 1
    owned_file = tmp_path / "owned.json"
    owned_file.write_text(json.dumps({"owned": ["1"]}), encoding="utf-8")
    assert main(["--db", str(db_path), "--owned-file", str(owned_file)]) == 1


def test_cli_timeout_exits_with_code_two(db_path: Path) -> None:
    assert main(["--db", str(db_path), "--owned", "1", "2", "--timeout", "0.000000001"]) == 2


def test_module_entry_point_runs(db_path: Path) -> None:
    result = subprocess.run(
        [sys.executable, "-m", "pal_reachability", "--db", str(db_path), "--owned", "1", "2", "--json"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout)["reachable_count"] == 4
