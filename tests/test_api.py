"""Endpoint tests with the provider client mocked out."""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

import config
from errors import ApiError, ErrorType
from main import app

AUTH = {"Authorization": "Bearer tok"}
BOOSTS = {config.CATALOG_ITEMS["boost_secondary_1"]: 1, config.CATALOG_ITEMS["boost_secondary_2"]: 1}


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def as_admin():
    with patch("funifier_client.get_my_status", return_value={"_id": "admin", "teams": [config.ADMIN_TEAM_ID]}) as mock_me:
        yield mock_me


def _status(team="CARTEIRA_II", points=1000, catalog_items=None):
    return {
        "_id": "p1",
        "name": "Maria",
        "total_points": points,
        "catalog_items": catalog_items if catalog_items is not None else BOOSTS,
        "challenge_progress": [],
        "teams": [config.TEAM_IDS[team]],
    }


def _dashboard_mocks(status, report=None, report_error=None, config_doc=None):
    report_mock = AsyncMock(return_value=report, side_effect=report_error)
    return (
        patch("funifier_client.get_player_status_async", AsyncMock(return_value=status)),
        patch("funifier_client.get_latest_player_report_async", report_mock),
        patch("funifier_client.get_document_async", AsyncMock(return_value=config_doc)),
    )


class TestMisc:

    def test_root(self, client):
        assert client.get("/").json() == {"status": "Essencia Dashboard is running!"}

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"


class TestAuth:

    def test_missing_field(self, client):
        response = client.post("/api/auth", json={"username": "maria"})
        assert response.status_code == 400

    @patch("funifier_client.authenticate")
    def test_bad_credentials(self, mock_auth, client):
        mock_auth.side_effect = ApiError(ErrorType.AUTHENTICATION_ERROR, "Credenciais inválidas ou sessão expirada")
        response = client.post("/api/auth", json={"username": "maria", "password": "x"})
        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_ERROR"

    @patch("funifier_client.authenticate")
    def test_success(self, mock_auth, client):
        mock_auth.return_value = {"access_token": "abc", "token_type": "Bearer", "expires_in": 3600}
        response = client.post("/api/auth", json={"username": "maria", "password": "x"})
        assert response.status_code == 200
        assert response.json()["access_token"] == "abc"

    @patch("funifier_client.authenticate")
    def test_provider_down(self, mock_auth, client):
        mock_auth.side_effect = ApiError(ErrorType.NETWORK_ERROR, "timeout")
        response = client.post("/api/auth", json={"username": "maria", "password": "x"})
        assert response.status_code == 503


class TestDashboard:

    def test_requires_token(self, client):
        response = client.get("/api/dashboard/p1")
        assert response.status_code == 401

    def test_report_unlocks_carteira_ii(self, client):
        report = {"_id": "p1_2024-05-10", "playerId": "p1", "reaisPorAtivoPercentual": 110, "diaDociclo": 12, "totalDiasCiclo": 21}
        mocks = _dashboard_mocks(_status(), report=report)
        with mocks[0], mocks[1], mocks[2]:
            response = client.get("/api/dashboard/p1", headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["team_type"] == "CARTEIRA_II"
        assert body["points_locked"] is False
        assert body["total_points"] == 3000
        assert body["is_data_from_collection"] is True
        assert body["primary_goal"]["source"] == "report"
        assert body["days_remaining_in_cycle"] == 9

    def test_degrades_when_report_lookup_fails(self, client):
        mocks = _dashboard_mocks(_status(), report_error=ApiError(ErrorType.NETWORK_ERROR, "down"))
        with mocks[0], mocks[1], mocks[2]:
            response = client.get("/api/dashboard/p1", headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["is_data_from_collection"] is False
        assert body["points_locked"] is True
        assert body["total_points"] == 1000
        assert body["primary_goal"]["color"] == "red"

    def test_malformed_report_is_ignored(self, client):
        mocks = _dashboard_mocks(_status(), report={"playerId": "p1", "atividadePercentual": "lots"})
        with mocks[0], mocks[1], mocks[2]:
            response = client.get("/api/dashboard/p1", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["is_data_from_collection"] is False

    def test_team_query_param(self, client):
        status = _status()
        status["teams"] = [config.TEAM_IDS["CARTEIRA_II"], config.TEAM_IDS["ER"]]
        mocks = _dashboard_mocks(status)
        with mocks[0], mocks[1], mocks[2]:
            response = client.get("/api/dashboard/p1?team=ER", headers=AUTH)
        assert response.json()["team_type"] == "ER"

    def test_player_without_team(self, client):
        mocks = _dashboard_mocks({"_id": "p1", "teams": []})
        with mocks[0], mocks[1], mocks[2]:
            response = client.get("/api/dashboard/p1", headers=AUTH)
        assert response.status_code == 422

    def test_provider_auth_failure(self, client):
        with patch("funifier_client.get_player_status_async", AsyncMock(side_effect=ApiError(ErrorType.AUTHENTICATION_ERROR, "expired"))), \
                patch("funifier_client.get_latest_player_report_async", AsyncMock(return_value=None)), \
                patch("funifier_client.get_document_async", AsyncMock(return_value=None)):
            response = client.get("/api/dashboard/p1", headers=AUTH)
        assert response.status_code == 401


class TestPlayer:

    @patch("funifier_client.get_player_status")
    def test_identification(self, mock_status, client):
        mock_status.return_value = _status(team="CARTEIRA_IV")
        body = client.get("/api/player/p1", headers=AUTH).json()
        assert body["team_types"] == ["CARTEIRA_IV"]
        assert body["role"] == "player"


CSV_BODY = (
    "Player ID,Dia do Ciclo,Total Dias Ciclo,FM,FA,F%,RM,RA,R%,MM,MA,M%,AM,AA,A%\n"
    "p1,12,21,1,1,90,1,1,110,1,1,80,1,1,70\n"
    "p2,,21,1,1,90,1,1,110,1,1,80,1,1,70\n"
    "p3,12,21,1,1,50,1,1,60,1,1,70,1,1,80\n"
)

STORED_REPORTS = [
    {"_id": "p1_2024-05-10", "playerId": "p1", "reportDate": "2024-05-10", "diaDociclo": 10, "totalDiasCiclo": 21,
     "atividadePercentual": 90, "reaisPorAtivoPercentual": 100},
    {"_id": "p1_2024-04-10", "playerId": "p1", "reportDate": "2024-04-10", "diaDociclo": 10, "totalDiasCiclo": 21,
     "atividadePercentual": 60, "reaisPorAtivoPercentual": 70},
    {"_id": "p1_2024-05-05", "playerId": "p1", "reportDate": "2024-05-05", "diaDociclo": 5, "totalDiasCiclo": 21,
     "atividadePercentual": 80},
]


@pytest.mark.usefixtures("as_admin")
class TestReports:

    def test_validate(self, client):
        response = client.post(
            "/api/reports/validate", headers=AUTH,
            files={"file": ("report.csv", CSV_BODY.encode(), "text/csv")},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["is_valid"] is False
        assert body["valid_rows"] == 2
        assert [e["field"] for e in body["errors"]] == ["current_cycle_day"]

    def test_validate_rejects_extension(self, client):
        response = client.post(
            "/api/reports/validate", headers=AUTH,
            files={"file": ("report.xlsx", CSV_BODY.encode(), "text/csv")},
        )
        assert response.status_code == 422

    @patch("funifier_client.bulk_insert_records")
    @patch("funifier_client.get_latest_reports_by_player")
    def test_upload_writes_changed_rows_only(self, mock_latest, mock_bulk, client):
        mock_latest.return_value = {
            "p3": {"playerId": "p3", "diaDociclo": 12, "totalDiasCiclo": 21, "faturamentoPercentual": 50,
                   "reaisPorAtivoPercentual": 60, "multimarcasPorAtivoPercentual": 70, "atividadePercentual": 80},
        }
        response = client.post(
            "/api/reports/upload", headers=AUTH,
            files={"file": ("report.csv", CSV_BODY.encode(), "text/csv")},
            data={"report_date": "2024-05-10"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["imported"] == 1
        assert body["unchanged"] == 1
        assert body["rejected"] == 1
        assert list(body["differences"]) == ["p1"]

        collection, documents, token = mock_bulk.call_args.args
        assert collection == config.REPORT_COLLECTION
        assert token == "tok"
        assert documents[0]["_id"] == "p1_2024-05-10"
        assert documents[0]["reaisPorAtivoPercentual"] == 110
        assert documents[0]["status"] == "REGISTERED"

    @patch("funifier_client.get_player_report_history")
    def test_history(self, mock_history, client):
        mock_history.return_value = [
            {"_id": "p1_2024-05-10", "playerId": "p1", "atividadePercentual": 70, "time": 1715299200000},
            {"_id": "broken"},
        ]
        body = client.get("/api/reports/p1/history", headers=AUTH).json()
        assert len(body) == 1
        assert body[0]["record"]["playerId"] == "p1"
        assert body[0]["uploaded"].endswith("ago")


    @patch("funifier_client.bulk_insert_records")
    @patch("funifier_client.get_latest_reports_by_player")
    def test_upload_with_malformed_stored_report(self, mock_latest, mock_bulk, client):
        mock_latest.return_value = {"p1": {"playerId": "p1", "diaDociclo": "n/a"}}
        response = client.post(
            "/api/reports/upload", headers=AUTH,
            files={"file": ("report.csv", CSV_BODY.encode(), "text/csv")},
            data={"report_date": "2024-05-10"},
        )
        assert response.status_code == 200
        assert response.json()["imported"] == 2
        _, documents, _ = mock_bulk.call_args.args
        assert [d["playerId"] for d in documents] == ["p1", "p3"]

    @patch("funifier_client.get_registered_reports")
    def test_cycles(self, mock_reports, client):
        mock_reports.return_value = STORED_REPORTS
        body = client.get("/api/reports/p1/cycles", headers=AUTH).json()
        assert [c["cycle_number"] for c in body["cycles"]] == [2, 1]
        latest = body["cycles"][0]
        assert latest["start_date"] == "2024-05-01"
        assert latest["final_metrics"] == {"atividade": 90, "reais_por_ativo": 100}
        assert len(latest["progress_timeline"]) == 2
        assert body["summary"]["total_cycles"] == 2
        assert body["summary"]["best_cycle"]["cycle_number"] == 2
        assert body["summary"]["average_performance"] == 80

    @patch("funifier_client.get_records")
    @patch("funifier_client.get_registered_reports")
    def test_cycles_for_team_goals(self, mock_reports, mock_config, client):
        mock_reports.return_value = STORED_REPORTS
        mock_config.return_value = []
        body = client.get("/api/reports/p1/cycles?team=CARTEIRA_II", headers=AUTH).json()
        assert body["cycles"][0]["final_metrics"] == {"reais_por_ativo": 100, "atividade": 90, "multimarcas_por_ativo": 0}

    def test_cycles_unknown_team(self, client):
        with patch("funifier_client.get_registered_reports", return_value=STORED_REPORTS):
            response = client.get("/api/reports/p1/cycles?team=vendas", headers=AUTH)
        assert response.status_code == 422

    @patch("funifier_client.get_registered_reports")
    def test_compare_cycles(self, mock_reports, client):
        mock_reports.return_value = STORED_REPORTS
        body = client.get("/api/reports/p1/cycles/compare?cycle1=1&cycle2=2", headers=AUTH).json()
        assert body["improvements"] == {"atividade": 30, "reais_por_ativo": 30}
        assert body["summary"].startswith("Excelente melhoria")


@pytest.mark.usefixtures("as_admin")
class TestAdmin:

    @patch("funifier_client.get_records")
    def test_get_configuration_defaults(self, mock_get, client):
        mock_get.return_value = []
        body = client.get("/api/admin/configuration", headers=AUTH).json()
        assert body["configurations"]["CARTEIRA_II"]["unlock_rule"] == "threshold"

    @patch("funifier_client.insert_record")
    @patch("funifier_client.get_records")
    def test_put_invalid_configuration(self, mock_get, mock_insert, client):
        mock_get.return_value = []
        configuration = client.get("/api/admin/configuration", headers=AUTH).json()
        configuration["configurations"]["ER"]["primary_goal"]["name"] = "vendas"
        response = client.put("/api/admin/configuration", headers=AUTH, json=configuration)
        assert response.status_code == 422
        mock_insert.assert_not_called()

    @patch("funifier_client.insert_record")
    @patch("funifier_client.get_records")
    def test_put_configuration(self, mock_get, mock_insert, client):
        mock_get.return_value = []
        configuration = client.get("/api/admin/configuration", headers=AUTH).json()
        configuration["configurations"]["CARTEIRA_II"]["unlock_rule"] = "catalog_item"
        response = client.put("/api/admin/configuration", headers=AUTH, json=configuration)
        assert response.status_code == 200
        assert response.json()["warnings"][0]["field"] == "CARTEIRA_II.unlock_rule"
        mock_insert.assert_called_once()

    @patch("funifier_client.add_team_member")
    @patch("funifier_client.create_player")
    def test_create_player_with_team(self, mock_create, mock_add, client):
        mock_create.return_value = {"_id": "new", "name": "Novo"}
        response = client.post("/api/admin/players", headers=AUTH, json={"id": "new", "name": "Novo", "team": "E6F4sCh"})
        assert response.status_code == 200
        mock_add.assert_called_once_with("E6F4sCh", "new", "tok")

    @patch("funifier_client.get_catalogs")
    @patch("funifier_client.get_virtual_goods_items")
    def test_store(self, mock_items, mock_catalogs, client):
        mock_items.return_value = [{"_id": "E6F0O5f", "name": "Desbloquear pontos"}]
        mock_catalogs.return_value = [{"_id": "loja"}]
        body = client.get("/api/admin/store", headers=AUTH).json()
        assert body["items"][0]["_id"] == "E6F0O5f"

    @patch("funifier_client.get_action_logs")
    @patch("funifier_client.get_all_player_statuses")
    @patch("funifier_client.execute_scheduler")
    def test_cycle_change(self, mock_execute, mock_statuses, mock_logs, client):
        mock_statuses.return_value = [{"_id": "p1", "point_categories": {"points": 0}, "catalog_items": {config.LOCKED_ITEM_ID: 1}}]
        mock_logs.return_value = []
        with patch("cycle_change.time.sleep"):
            response = client.post("/api/admin/cycle-change", headers=AUTH)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["completed_steps"] == 4
        assert [c.args[0] for c in mock_execute.call_args_list] == [s["id"] for s in config.CYCLE_SCHEDULERS]

    def test_cycle_change_step_logs(self, client):
        with patch("funifier_client.get_scheduler_logs", return_value=[{"status": "ok"}]) as mock_logs:
            response = client.get("/api/admin/cycle-change/steps/1/logs", headers=AUTH)
        assert response.json() == [{"status": "ok"}]
        assert mock_logs.call_args.args[0] == config.CYCLE_SCHEDULERS[1]["id"]
        assert client.get("/api/admin/cycle-change/steps/9/logs", headers=AUTH).status_code == 422


class TestAdminAccess:

    @pytest.fixture(autouse=True)
    def as_player(self):
        with patch("funifier_client.get_my_status", return_value=_status()) as mock_me:
            yield mock_me

    @patch("funifier_client.insert_record")
    def test_player_cannot_save_configuration(self, mock_insert, client):
        response = client.put("/api/admin/configuration", headers=AUTH, json={"configurations": {}})
        assert response.status_code == 403
        mock_insert.assert_not_called()

    @patch("funifier_client.bulk_insert_records")
    def test_player_cannot_upload_reports(self, mock_bulk, client):
        response = client.post(
            "/api/reports/upload", headers=AUTH,
            files={"file": ("report.csv", CSV_BODY.encode(), "text/csv")},
        )
        assert response.status_code == 403
        mock_bulk.assert_not_called()

    @patch("funifier_client.execute_scheduler")
    def test_player_cannot_change_cycle(self, mock_execute, client):
        assert client.post("/api/admin/cycle-change", headers=AUTH).status_code == 403
        mock_execute.assert_not_called()

    def test_admin_status_is_read_with_callers_token(self, as_player, client):
        client.get("/api/admin/players", headers=AUTH)
        as_player.assert_called_once_with("tok")

    def test_missing_token_is_401(self, client):
        assert client.delete("/api/admin/players/p1").status_code == 401

    def test_player_can_read_own_history(self, client):
        with patch("funifier_client.get_registered_reports", return_value=[]):
            response = client.get("/api/reports/p1/cycles", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["summary"]["total_cycles"] == 0
