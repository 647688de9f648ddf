"""Tests for PortWatch CLI commands."""
from __future__ import annotations

from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from portwatch.cli import app
from portwatch.modules.port_call_state import PortStateConflictError
from portwatch.modules.port_detector import PortCallProcessResult
from portwatch.modules.port_metrics import BusyPort, DailyPortCounts, PortMetrics7d


runner = CliRunner()


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@patch("portwatch.modules.port_seed.seed_ports", return_value={"inserted": 21, "skipped": 0})
@patch("portwatch.database.SessionLocal")
@patch("portwatch.database.init_db")
def test_init_creates_schema_and_seeds(mock_init, mock_sl, mock_seed):
    mock_db = MagicMock()
    mock_sl.return_value = mock_db
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    mock_init.assert_called_once()
    mock_seed.assert_called_once_with(mock_db)
    mock_db.close.assert_called_once()
    assert "21 inserted" in result.output


@patch("portwatch.modules.port_seed.seed_ports")
@patch("portwatch.database.init_db")
def test_init_no_seed(mock_init, mock_seed):
    result = runner.invoke(app, ["init", "--no-seed"])
    assert result.exit_code == 0
    mock_seed.assert_not_called()


@patch("portwatch.database.init_db")
def test_init_failure(mock_init):
    mock_init.side_effect = Exception("database locked")
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 1
    assert "failed" in result.output.lower()


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


@patch("portwatch.modules.port_detector.run_port_call_processing")
@patch("portwatch.database.SessionLocal")
def test_detect_all(mock_sl, mock_run):
    mock_run.return_value = {
        "vessels_processed": 12, "port_calls_opened": 3, "port_calls_closed": 2, "conflicts": 1,
    }
    result = runner.invoke(app, ["detect", "--lookback-hours", "12"])

    assert result.exit_code == 0
    assert mock_run.call_args.kwargs["lookback_hours"] == 12.0
    assert "3 opened" in result.output
    assert "2 closed" in result.output
    assert "conflicts" in result.output


@patch("portwatch.modules.port_detector.process_port_calls_for_vessel")
@patch("portwatch.database.SessionLocal")
def test_detect_single_vessel(mock_sl, mock_process):
    mock_process.return_value = PortCallProcessResult(vessel_id=5, opened_call_ids=[9])
    result = runner.invoke(app, ["detect", "--vessel-id", "5"])

    assert result.exit_code == 0
    assert mock_process.call_args.args[1] == 5
    assert "1 opened" in result.output


@patch("portwatch.modules.port_detector.process_port_calls_for_vessel")
@patch("portwatch.database.SessionLocal")
def test_detect_single_vessel_conflict(mock_sl, mock_process):
    mock_process.side_effect = PortStateConflictError(5)
    result = runner.invoke(app, ["detect", "--vessel-id", "5"])
    assert result.exit_code == 1
    mock_sl.return_value.close.assert_called_once()


# ---------------------------------------------------------------------------
# metrics / status
# ---------------------------------------------------------------------------


@patch("portwatch.modules.port_metrics.get_port_metrics_7d")
@patch("portwatch.database.SessionLocal")
def test_metrics_table(mock_sl, mock_metrics):
    mock_db = MagicMock()
    mock_sl.return_value = mock_db
    mock_db.query.return_value.order_by.return_value.all.return_value = [
        SimpleNamespace(port_id=1, name="Rotterdam"),
        SimpleNamespace(port_id=2, name="Singapore"),
    ]
    mock_metrics.side_effect = [
        PortMetrics7d(5, 4, 5, 1, 30.0),
        PortMetrics7d(0, 0, 0, 0, None),
    ]
    result = runner.invoke(app, ["metrics", "--as-of", "2024-01-08T00:00:00"])

    assert result.exit_code == 0
    assert "Rotterdam" in result.output
    assert "30.0" in result.output
    assert mock_metrics.call_count == 2


@patch("portwatch.database.SessionLocal")
def test_metrics_no_ports(mock_sl):
    mock_sl.return_value.query.return_value.order_by.return_value.all.return_value = []
    result = runner.invoke(app, ["metrics"])
    assert result.exit_code == 1
    assert "No ports" in result.output


@patch("portwatch.modules.port_metrics.get_daily_arrivals_departures")
@patch("portwatch.database.SessionLocal")
def test_daily_table(mock_sl, mock_daily):
    mock_sl.return_value.query.return_value.filter.return_value.first.return_value = SimpleNamespace(
        port_id=1, name="Rotterdam",
    )
    mock_daily.return_value = [
        DailyPortCounts(day=date(2024, 1, 7), arrivals=4, departures=2),
        DailyPortCounts(day=date(2024, 1, 8), arrivals=1, departures=3),
    ]
    result = runner.invoke(app, ["daily", "--port-id", "1", "--as-of", "2024-01-08T00:00:00"])

    assert result.exit_code == 0
    assert "2024-01-07" in result.output
    assert "Rotterdam" in result.output
    mock_sl.return_value.close.assert_called_once()


@patch("portwatch.database.SessionLocal")
def test_daily_unknown_port(mock_sl):
    mock_sl.return_value.query.return_value.filter.return_value.first.return_value = None
    result = runner.invoke(app, ["daily", "--port-id", "99"])
    assert result.exit_code == 1
    assert "not found" in result.output


@patch("portwatch.modules.port_metrics.get_top_busy_ports")
@patch("portwatch.database.SessionLocal")
def test_busiest_table(mock_sl, mock_top):
    mock_top.return_value = [
        BusyPort(port_id=2, name="Singapore", country="SG", arrivals_7d=9, unique_vessels_7d=7, avg_dwell_hours_7d=18.0),
    ]
    result = runner.invoke(app, ["busiest", "--limit", "5"])

    assert result.exit_code == 0
    assert "Singapore" in result.output
    assert "18.0" in result.output
    assert mock_top.call_args.kwargs["limit"] == 5


@patch("portwatch.modules.port_metrics.get_top_busy_ports", return_value=[])
@patch("portwatch.database.SessionLocal")
def test_busiest_empty(mock_sl, mock_top):
    result = runner.invoke(app, ["busiest"])
    assert result.exit_code == 0
    assert "No arrivals" in result.output

@patch("portwatch.modules.port_detector.get_port_tracking_status")
@patch("portwatch.database.SessionLocal")
def test_status(mock_sl, mock_status):
    mock_status.return_value = {
        "tracked_vessels": 40, "vessels_in_port": 6, "open_calls": 6, "vessel_states": [],
    }
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "40" in result.output
    assert "differs" not in result.output


@patch("portwatch.modules.port_detector.get_port_tracking_status")
@patch("portwatch.database.SessionLocal")
def test_status_flags_mismatch(mock_sl, mock_status):
    mock_status.return_value = {
        "tracked_vessels": 40, "vessels_in_port": 6, "open_calls": 8, "vessel_states": [],
    }
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "differs" in result.output
