import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

import config
from errors import ApiError, ErrorType
from models import PlayerStatus, TeamType

logger = logging.getLogger(__name__)

TEAM_TYPE_BY_ID = {team_id: TeamType(team) for team, team_id in config.TEAM_IDS.items()}


class PlayerIdentification(BaseModel):
    player_id: str
    player_name: str
    role: str
    is_admin: bool
    team_types: List[TeamType]
    primary_team: Optional[TeamType] = None
    teams: List[Any]


def determine_team_type(team: Optional[str]) -> Optional[TeamType]:
    """Maps a provider team id, or failing that a team name, to a team type."""
    if not team:
        return None
    if team in TEAM_TYPE_BY_ID:
        return TEAM_TYPE_BY_ID[team]

    # Exact team type names first; "er" is too short to search for inside other names.
    name = team.strip().lower()
    if name in (t.value.lower() for t in TeamType):
        return TeamType(name.upper())
    for team_type, patterns in config.TEAM_NAME_PATTERNS:
        if any(p in name for p in patterns):
            return TeamType(team_type)
    return None

def team_types_for(teams: Iterable[Any]) -> List[TeamType]:
    """Dashboard team types for a player's teams, in order, without duplicates."""
    found: List[TeamType] = []
    for team in teams or []:
        if isinstance(team, dict):
            team_type = determine_team_type(team.get("_id")) or determine_team_type(team.get("name"))
        else:
            team_type = determine_team_type(str(team))
        if team_type and team_type not in found:
            found.append(team_type)
    return found

def is_admin(teams: Iterable[Any]) -> bool:
    for team in teams or []:
        team_id = team.get("_id") if isinstance(team, dict) else team
        if team_id == config.ADMIN_TEAM_ID:
            return True
    return False

def identify_player(status: Dict[str, Any]) -> PlayerIdentification:
    try:
        player = PlayerStatus.model_validate(status)
    except ValidationError as e:
        raise ApiError(ErrorType.DATA_PROCESSING_ERROR, "Unexpected player status payload", details=e.errors()[:3])

    team_types = team_types_for(player.teams)
    admin = is_admin(player.teams)
    if not team_types and not admin:
        logger.warning("Player %s has no dashboard team (teams=%s)", player.id, player.teams)

    return PlayerIdentification(
        player_id=player.id,
        player_name=player.name,
        role="admin" if admin else "player",
        is_admin=admin,
        team_types=team_types,
        primary_team=team_types[0] if team_types else None,
        teams=player.teams,
    )

def select_team(team_types: List[TeamType], requested: Optional[str] = None) -> Optional[TeamType]:
    """The requested team when the player belongs to it, else the first one."""
    if requested:
        wanted = determine_team_type(requested)
        if wanted in team_types:
            return wanted
        logger.info("Requested team %s not available, falling back", requested)
    return team_types[0] if team_types else None
