from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from typing import Optional, List, Dict, Any

import cycle_change
import funifier_client
import goal_config
from models import DashboardConfiguration
from routers.auth import require_admin

router = APIRouter(prefix="/admin")

# --- Pydantic Models ---
class ConfigurationIssue(BaseModel):
    field: str
    message: str

class ConfigurationValidation(BaseModel):
    is_valid: bool
    errors: List[ConfigurationIssue]
    warnings: List[ConfigurationIssue]

class ConfigurationSaveResponse(BaseModel):
    configuration: DashboardConfiguration
    warnings: List[ConfigurationIssue]

class NewPlayer(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    team: Optional[str] = None

class StoreResponse(BaseModel):
    items: List[Dict[str, Any]]
    catalogs: List[Dict[str, Any]]


# --- Configuration ---
@router.get("/configuration", response_model=DashboardConfiguration, tags=["Admin"])
def get_configuration(token: str = Depends(require_admin)):
    return goal_config.load_dashboard_configuration(token)

@router.post("/configuration/validate", response_model=ConfigurationValidation, tags=["Admin"])
def validate_configuration(configuration: DashboardConfiguration, token: str = Depends(require_admin)):
    errors, warnings = goal_config.validate_configuration(configuration)
    return ConfigurationValidation(is_valid=not errors, errors=errors, warnings=warnings)

@router.put("/configuration", response_model=ConfigurationSaveResponse, tags=["Admin"])
def update_configuration(configuration: DashboardConfiguration, token: str = Depends(require_admin)):
    _, warnings = goal_config.validate_configuration(configuration)
    saved = goal_config.save_configuration(configuration, token, updated_by=configuration.updated_by)
    return ConfigurationSaveResponse(configuration=saved, warnings=warnings)


# --- Players ---
@router.get("/players", tags=["Admin"])
def list_players(token: str = Depends(require_admin)):
    return funifier_client.get_players(token)

@router.get("/players/{player_id}", tags=["Admin"])
def get_player(player_id: str, token: str = Depends(require_admin)):
    return funifier_client.get_player(player_id, token)

@router.post("/players", tags=["Admin"])
def create_player(player: NewPlayer, token: str = Depends(require_admin)):
    payload = {"_id": player.id, "name": player.name}
    if player.email:
        payload["email"] = player.email
    created = funifier_client.create_player(payload, token)
    if player.team:
        funifier_client.add_team_member(player.team, player.id, token)
    return created

@router.delete("/players/{player_id}", status_code=204, tags=["Admin"])
def delete_player(player_id: str, token: str = Depends(require_admin)):
    funifier_client.delete_player(player_id, token)
    return Response(status_code=204)


# --- Teams ---
@router.get("/teams", tags=["Admin"])
def list_teams(token: str = Depends(require_admin)):
    return funifier_client.get_teams(token)

@router.get("/teams/{team_id}/members", tags=["Admin"])
def list_team_members(team_id: str, token: str = Depends(require_admin)):
    return funifier_client.get_team_members(team_id, token)

@router.post("/teams/{team_id}/members/{player_id}", status_code=204, tags=["Admin"])
def add_team_member(team_id: str, player_id: str, token: str = Depends(require_admin)):
    funifier_client.add_team_member(team_id, player_id, token)
    return Response(status_code=204)

@router.delete("/teams/{team_id}/members/{player_id}", status_code=204, tags=["Admin"])
def remove_team_member(team_id: str, player_id: str, token: str = Depends(require_admin)):
    funifier_client.remove_team_member(team_id, player_id, token)
    return Response(status_code=204)


# --- Store ---
@router.get("/store", response_model=StoreResponse, tags=["Admin"])
def get_store(token: str = Depends(require_admin)):
    return StoreResponse(
        items=funifier_client.get_virtual_goods_items(token),
        catalogs=funifier_client.get_catalogs(token),
    )


# --- Cycle Change ---
@router.get("/cycle-change", response_model=List[cycle_change.CycleChangeStep], tags=["Admin"])
def get_cycle_change_steps(token: str = Depends(require_admin)):
    return cycle_change.planned_steps()

@router.post("/cycle-change", response_model=cycle_change.CycleChangeRun, tags=["Admin"])
def run_cycle_change(token: str = Depends(require_admin)):
    """Runs the end-of-cycle schedulers in order, stopping at the first failed step."""
    return cycle_change.run_cycle_change(token)

@router.get("/cycle-change/steps/{index}/logs", tags=["Admin"])
def get_cycle_change_step_logs(index: int, max_results: int = 50, token: str = Depends(require_admin)):
    return cycle_change.step_logs(index, token, max_results=max_results)
