from fastapi import APIRouter, Depends
from pydantic import ValidationError
from typing import Optional
import asyncio
import logging

import funifier_client
import goal_config
import identification
import scoring
from errors import ApiError, ErrorType
from models import ComputedDashboardView, PlayerStatus, ReportRecord
from routers.auth import require_token

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_report(document) -> Optional[ReportRecord]:
    if not document:
        return None
    try:
        return ReportRecord.model_validate(document)
    except ValidationError as e:
        logger.warning("Ignoring malformed report %s: %s", document.get("_id"), e.errors()[:3])
        return None


# --- API Endpoints ---
@router.get("/dashboard/{player_id}", response_model=ComputedDashboardView, tags=["Dashboard"])
async def get_dashboard(player_id: str, team: Optional[str] = None, token: str = Depends(require_token)):
    status, report_doc, team_configs = await asyncio.gather(
        funifier_client.get_player_status_async(player_id, token),
        funifier_client.get_latest_player_report_async(player_id, token),
        goal_config.load_team_configs_async(token),
        return_exceptions=True,
    )

    if isinstance(status, BaseException):
        raise status
    if isinstance(report_doc, BaseException):
        logger.warning("Report lookup failed for %s, using challenge progress: %s", player_id, report_doc)
        report_doc = None
    if isinstance(team_configs, BaseException):
        logger.warning("Configuration load failed, using defaults: %s", team_configs)
        team_configs = goal_config.default_configurations()

    try:
        player = PlayerStatus.model_validate(status)
    except ValidationError as e:
        raise ApiError(ErrorType.DATA_PROCESSING_ERROR, "Unexpected player status payload", details=e.errors()[:3])

    team_type = identification.select_team(identification.team_types_for(player.teams), team)
    if team_type is None:
        raise ApiError(ErrorType.VALIDATION_ERROR, f"Player {player_id} is not on a dashboard team")

    report = _parse_report(report_doc)
    return scoring.build_dashboard_view(player, team_configs[team_type], report)

@router.get("/player/{player_id}", response_model=identification.PlayerIdentification, tags=["Dashboard"])
def get_player(player_id: str, token: str = Depends(require_token)):
    status = funifier_client.get_player_status(player_id, token)
    return identification.identify_player(status)
