"""End-of-cycle scheduler workflow."""
from unittest.mock import patch

import pytest

import config
import cycle_change
from errors import ApiError, ErrorType

LOCKED = config.LOCKED_ITEM_ID


def _status(player_id, points=0, locked_points=0, items=None):
    return {
        "_id": player_id,
        "point_categories": {"points": points, "locked_points": locked_points},
        "catalog_items": items if items is not None else {LOCKED: 1},
    }


class TestChecks:

    def test_players_holding_points(self):
        statuses = [_status("p1", points=10), _status("p2"), _status("p3", locked_points=5), {"_id": "p4"}]
        assert cycle_change.players_holding_points(statuses, "points") == ["p1"]
        assert cycle_change.players_holding_points(statuses, "locked_points") == ["p3"]

    def test_players_with_leftover_items(self):
        statuses = [
            _status("ok", items={LOCKED: 1, "E6F0O5f": 0}),
            _status("boost_left", items={LOCKED: 1, "E6F0WGc": 1}),
            _status("no_locked_item", items={"E6F0O5f": 0}),
            _status("two_locked", items={LOCKED: 2}),
        ]
        assert cycle_change.players_with_leftover_items(statuses) == ["boost_left", "no_locked_item", "two_locked"]

    @patch("cycle_change.funifier_client.get_action_logs")
    def test_action_log_check(self, mock_logs):
        mock_logs.return_value = [{"actionId": "venda"}]
        result = cycle_change.check_step("action_log_cleared", "tok")
        assert result.success is False
        mock_logs.return_value = []
        assert cycle_change.check_step("action_log_cleared", "tok").success is True

    @patch("cycle_change.funifier_client.get_all_player_statuses")
    def test_points_check_lists_offenders(self, mock_statuses):
        mock_statuses.return_value = [_status("p1", points=3), _status("p2")]
        result = cycle_change.check_step("points_cleared", "tok")
        assert result.success is False
        assert result.players_checked == 2
        assert result.offending_players == ["p1"]

    def test_unknown_check(self):
        with patch("cycle_change.funifier_client.get_all_player_statuses", return_value=[]):
            with pytest.raises(ApiError):
                cycle_change.check_step("everything_cleared", "tok")


@patch("cycle_change.time.sleep")
@patch("cycle_change.funifier_client.get_action_logs")
@patch("cycle_change.funifier_client.get_all_player_statuses")
@patch("cycle_change.funifier_client.execute_scheduler")
class TestRunCycleChange:

    def test_all_steps_complete_in_order(self, mock_execute, mock_statuses, mock_logs, mock_sleep):
        mock_statuses.return_value = [_status("p1")]
        mock_logs.return_value = []
        run = cycle_change.run_cycle_change("tok")
        assert run.status == "completed"
        assert run.completed_steps == 4
        assert [c.args for c in mock_execute.call_args_list] == [(s["id"], "tok") for s in config.CYCLE_SCHEDULERS]
        assert mock_sleep.call_count == 4
        assert all(s.finished_at >= s.started_at for s in run.steps)

    def test_failed_check_stops_the_run(self, mock_execute, mock_statuses, mock_logs, mock_sleep):
        mock_statuses.return_value = [_status("p1", locked_points=7)]
        run = cycle_change.run_cycle_change("tok", settle_seconds=0)
        assert run.status == "failed"
        assert [s.status for s in run.steps] == ["completed", "failed", "pending", "pending"]
        assert run.steps[1].check.offending_players == ["p1"]
        assert mock_execute.call_count == 2
        mock_sleep.assert_not_called()

    def test_scheduler_error_fails_the_step(self, mock_execute, mock_statuses, mock_logs, mock_sleep):
        mock_execute.side_effect = ApiError(ErrorType.FUNIFIER_API_ERROR, "scheduler down")
        run = cycle_change.run_cycle_change("tok")
        assert run.failed_steps == 1
        assert run.steps[0].message == "scheduler down"
        assert run.steps[1].status == "pending"
        mock_statuses.assert_not_called()

    def test_concurrent_run_is_rejected(self, mock_execute, mock_statuses, mock_logs, mock_sleep):
        with cycle_change._run_lock:
            with pytest.raises(ApiError) as exc:
                cycle_change.run_cycle_change("tok")
        assert exc.value.type == ErrorType.VALIDATION_ERROR
        mock_execute.assert_not_called()


class TestStepLogs:

    @patch("cycle_change.funifier_client.get_scheduler_logs")
    def test_logs_for_step(self, mock_logs):
        mock_logs.return_value = [{"status": "ok"}]
        assert cycle_change.step_logs(0, "tok") == [{"status": "ok"}]
        mock_logs.assert_called_once_with(config.CYCLE_SCHEDULERS[0]["id"], "tok", max_results=50)

    def test_unknown_step(self):
        with pytest.raises(ApiError):
            cycle_change.step_logs(4, "tok")
