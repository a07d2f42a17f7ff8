import pytest

import config
import goal_config
from models import PlayerStatus, TeamType


UNLOCK_ITEM = config.CATALOG_ITEMS["unlock_points"]
BOOST_1 = config.CATALOG_ITEMS["boost_secondary_1"]
BOOST_2 = config.CATALOG_ITEMS["boost_secondary_2"]


@pytest.fixture
def team_configs():
    return goal_config.default_configurations()


@pytest.fixture
def make_player():
    def _make(points=1000, catalog_items=None, challenge_progress=None, teams=None, player_id="player1"):
        return PlayerStatus.model_validate({
            "_id": player_id,
            "name": "Maria Silva",
            "total_points": points,
            "catalog_items": catalog_items or {},
            "challenge_progress": challenge_progress or [],
            "teams": teams if teams is not None else [config.TEAM_IDS["CARTEIRA_I"]],
        })
    return _make


@pytest.fixture
def carteira_ii(team_configs):
    return team_configs[TeamType.CARTEIRA_II]


@pytest.fixture
def carteira_i(team_configs):
    return team_configs[TeamType.CARTEIRA_I]
