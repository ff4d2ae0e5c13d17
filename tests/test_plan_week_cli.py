"""
Tests for the JSON snapshot loader and the plan_week command-line tool.
"""

import json
import shutil
import sys
import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest

from bakery_planning.persistence.json_snapshot import load_snapshot, snapshot_from_dict
from bakery_planning.utils.logging_config import reset_logging

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))
import plan_week  # noqa: E402


def _snapshot_data():
    window_start = date(2026, 3, 2) - timedelta(weeks=8)
    sales = [
        {"product_id": "p1", "date": (window_start + timedelta(weeks=i)).isoformat(), "qty": q}
        for i, q in enumerate([98, 101, 99, 100, 102, 98, 101, 100])
    ]
    return {
        "products": [
            {"id": "p1", "nome": "Baguete", "setor": "Padaria"},
            {"id": "p2", "nome": "Sonho", "setor": "Confeitaria"},
        ],
        "sales": sales,
        "losses": [],
        "events": [{"name": "Feira", "date": "2026-03-04", "impact_percentage": 0, "sectors": ["Todos"]}],
        "settings": [{"chave": "planejamento_sugestao_sem_dados", "valor": "6"}],
    }


@pytest.fixture
def temp_dir():
    """Create temporary directory for snapshot, output and log files."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    reset_logging()
    shutil.rmtree(tmpdir)


@pytest.fixture(autouse=True)
def detach_log_handlers():
    """Drop handlers main() installed so they never outlive the test's streams."""
    yield
    reset_logging()


@pytest.fixture
def snapshot_file(temp_dir):
    """Snapshot with eight weeks of sales for p1 and none for p2."""
    path = temp_dir / "snapshot.json"
    path.write_text(json.dumps(_snapshot_data(), ensure_ascii=False), encoding="utf-8")
    return path


class TestSnapshotLoader:
    def test_load_snapshot(self, snapshot_file):
        """Row sections and store settings are read from the file."""
        snapshot = load_snapshot(snapshot_file)

        assert len(snapshot.products) == 2
        assert len(snapshot.sales) == 8
        assert snapshot.settings == {"planning": {"default_suggestion": {"value": "6"}}}
        assert snapshot.reference is None

    def test_missing_settings_section_means_defaults(self):
        """Absent sections become empty lists and empty settings."""
        snapshot = snapshot_from_dict({"products": [], "sales": []})
        assert snapshot.settings == {}
        assert snapshot.losses == []

    def test_non_list_section_ignored(self):
        """Sections of the wrong shape are dropped, not fatal."""
        snapshot = snapshot_from_dict({"sales": {"oops": 1}, "settings": "broken"})
        assert snapshot.sales == []
        assert snapshot.settings == {}

    def test_reference_section(self):
        """Per-product reference totals are parsed; unreadable entries skipped."""
        snapshot = snapshot_from_dict({"reference": {"p1": {"year_ago_sales": 90}, "p2": "bad"}})
        assert snapshot.reference["p1"].year_ago_sales == 90.0
        assert "p2" not in snapshot.reference

    @pytest.mark.parametrize("bad", [
        {"year_ago_sales": 30, "year_ago_losses": -300},
        {"year_ago_sales": -5},
        {"trailing_12m_sales": "nan"},
    ])
    def test_reference_rejects_negative_or_nonfinite_totals(self, bad):
        """A product with an impossible reference total is left out entirely."""
        snapshot = snapshot_from_dict({"reference": {"p1": bad, "p2": {"year_ago_sales": 40}}})

        assert "p1" not in snapshot.reference
        assert snapshot.reference["p2"].year_ago_sales == 40.0

    def test_invalid_json(self, temp_dir):
        """Broken JSON surfaces as ValueError."""
        path = temp_dir / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_snapshot(path)

    def test_not_an_object(self, temp_dir):
        """A top-level array is rejected."""
        path = temp_dir / "list.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError):
            load_snapshot(path)

    def test_missing_file(self, temp_dir):
        """Missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_snapshot(temp_dir / "nope.json")


class TestPlanWeekCli:
    def test_prints_plan(self, snapshot_file, temp_dir, capsys):
        """Plan JSON goes to stdout with the expected quantities."""
        code = plan_week.main([
            "--snapshot", str(snapshot_file),
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--log-dir", str(temp_dir / "logs"),
        ])

        assert code == plan_week.EXIT_OK
        payload = json.loads(capsys.readouterr().out)
        by_id = {p["product_id"]: p for p in payload["products"]}
        assert by_id["p1"]["suggested_production"] == 102
        assert by_id["p2"]["suggested_production"] == 6
        assert by_id["p2"]["confidence"] == "no data"
        assert by_id["p1"]["week_events_info"][0]["name"] == "Feira"

    def test_writes_output_file(self, snapshot_file, temp_dir):
        """--output writes the plan file, here through a thread pool."""
        out = temp_dir / "plan.json"
        code = plan_week.main([
            "--snapshot", str(snapshot_file),
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--log-dir", str(temp_dir / "logs"), "--output", str(out),
            "--workers", "2", "--threads",
        ])

        assert code == plan_week.EXIT_OK
        assert len(json.loads(out.read_text(encoding="utf-8"))["products"]) == 2

    def test_inverted_week_exit_code(self, snapshot_file, temp_dir, capsys):
        """End before start is an input error."""
        code = plan_week.main([
            "--snapshot", str(snapshot_file),
            "--start", "2026-03-08", "--end", "2026-03-02",
            "--log-dir", str(temp_dir / "logs"),
        ])

        assert code == plan_week.EXIT_INPUT_ERROR
        assert "startDate" in capsys.readouterr().err

    def test_missing_snapshot_exit_code(self, temp_dir):
        """Unreadable snapshot gives the snapshot exit code."""
        code = plan_week.main([
            "--snapshot", str(temp_dir / "missing.json"),
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--log-dir", str(temp_dir / "logs"),
        ])
        assert code == plan_week.EXIT_SNAPSHOT_ERROR

    def test_bad_reference_does_not_skew_loss_rate(self, temp_dir, capsys):
        """Negative year-ago losses never reach the blended loss rate."""
        data = _snapshot_data()
        data["settings"].append({"chave": "planejamento_estrategia", "valor": "blended"})
        data["reference"] = {"p1": {"year_ago_sales": 30, "year_ago_losses": -300}}
        path = temp_dir / "snapshot.json"
        path.write_text(json.dumps(data), encoding="utf-8")

        code = plan_week.main([
            "--snapshot", str(path),
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--log-dir", str(temp_dir / "logs"),
        ])

        assert code == plan_week.EXIT_OK
        payload = json.loads(capsys.readouterr().out)
        p1 = next(p for p in payload["products"] if p["product_id"] == "p1")
        assert p1["calc_details"]["loss_rate_used_pct"] == 0.0
        assert p1["calc_details"]["year_ago_loss_rate_pct"] is None


class TestVerbosity:
    @pytest.fixture
    def messy_snapshot(self, temp_dir):
        data = _snapshot_data()
        data["sales"].append({"product_id": "p1", "date": "not-a-date", "qty": 3})
        path = temp_dir / "messy.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def _run(self, snapshot, temp_dir, *extra):
        return plan_week.main([
            "--snapshot", str(snapshot),
            "--start", "2026-03-02", "--end", "2026-03-08",
            "--log-dir", str(temp_dir / "logs"),
            *extra,
        ])

    def test_quiet_by_default(self, messy_snapshot, temp_dir, capsys):
        """Without -v neither info nor skipped-row debug lines reach stderr."""
        assert self._run(messy_snapshot, temp_dir) == plan_week.EXIT_OK

        err = capsys.readouterr().err
        assert "Planning 2 products" not in err
        assert "Skipping malformed" not in err

    def test_single_v_shows_info(self, messy_snapshot, temp_dir, capsys):
        """-v prints the run summary but not per-row debug lines."""
        assert self._run(messy_snapshot, temp_dir, "-v") == plan_week.EXIT_OK

        err = capsys.readouterr().err
        assert "INFO bakery_planning.workflows.planning: Planning 2 products" in err
        assert "Skipping malformed" not in err

    def test_double_v_shows_skipped_rows(self, messy_snapshot, temp_dir, capsys):
        """-vv surfaces each skipped row while stdout stays pure JSON."""
        assert self._run(messy_snapshot, temp_dir, "-vv") == plan_week.EXIT_OK

        captured = capsys.readouterr()
        assert "DEBUG bakery_planning.domain.history: Skipping malformed SalesRecord row" in captured.err
        assert json.loads(captured.out)["skipped_rows"] == 1
