# models.py
import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TeamType(str, enum.Enum):
    CARTEIRA_0 = "CARTEIRA_0"
    CARTEIRA_I = "CARTEIRA_I"
    CARTEIRA_II = "CARTEIRA_II"
    CARTEIRA_III = "CARTEIRA_III"
    CARTEIRA_IV = "CARTEIRA_IV"
    ER = "ER"


class UnlockRule(str, enum.Enum):
    THRESHOLD = "threshold"
    CATALOG_ITEM = "catalog_item"


class GoalSource(str, enum.Enum):
    REPORT = "report"
    CHALLENGE = "challenge"
    DEFAULT = "default"


# --- Provider payloads ---
class PlayerStatus(BaseModel):
    """The subset of the provider's player_status payload the dashboard reads."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field("", alias="_id")
    name: str = ""
    total_points: Any = 0
    catalog_items: Dict[str, Any] = Field(default_factory=dict)
    challenge_progress: List[Dict[str, Any]] = Field(default_factory=list)
    teams: List[Any] = Field(default_factory=list)


class ReportRecord(BaseModel):
    """A stored report snapshot, keyed by (player_id, report_date).

    Field aliases are the document keys used in the provider collection.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, alias="_id")
    player_id: str = Field(..., alias="playerId")
    team: Optional[str] = None
    current_cycle_day: Optional[int] = Field(None, alias="diaDociclo")
    total_cycle_days: Optional[int] = Field(None, alias="totalDiasCiclo")
    atividade: Optional[float] = Field(None, alias="atividadePercentual")
    reais_por_ativo: Optional[float] = Field(None, alias="reaisPorAtivoPercentual")
    faturamento: Optional[float] = Field(None, alias="faturamentoPercentual")
    multimarcas_por_ativo: Optional[float] = Field(None, alias="multimarcasPorAtivoPercentual")
    conversoes: Optional[float] = Field(None, alias="conversoesPercentual")
    upa: Optional[float] = Field(None, alias="upaPercentual")
    report_date: Optional[str] = Field(None, alias="reportDate")
    status: str = "REGISTERED"
    time: Optional[int] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Team goal configuration ---
class BoostConfig(BaseModel):
    catalog_item_id: str
    name: str = ""


class GoalConfig(BaseModel):
    name: str
    display_name: str
    challenge_ids: List[str] = Field(default_factory=list)
    emoji: str = ""
    unit: str = ""
    boost: Optional[BoostConfig] = None


class TeamGoalConfig(BaseModel):
    team_type: TeamType
    display_name: str
    unlock_rule: UnlockRule = UnlockRule.CATALOG_ITEM
    unlock_catalog_item: str
    unlock_threshold: float = 100
    primary_goal: GoalConfig
    secondary_goal1: GoalConfig
    secondary_goal2: GoalConfig

    @property
    def goals(self) -> List[GoalConfig]:
        return [self.primary_goal, self.secondary_goal1, self.secondary_goal2]


class DashboardConfiguration(BaseModel):
    version: Optional[str] = None
    updated_by: Optional[str] = None
    configurations: Dict[TeamType, TeamGoalConfig]


# --- Computed dashboard ---
class ProgressBar(BaseModel):
    percentage: float
    color: str
    fill_percentage: float


class GoalMetric(BaseModel):
    name: str
    display_name: str
    percentage: float
    color: str
    progress_bar: ProgressBar
    source: GoalSource
    emoji: str = ""
    unit: str = ""
    is_main_goal: bool = False
    is_unlock_goal: bool = False
    unlock_threshold: Optional[float] = None
    has_boost: bool = False
    boost_active: bool = False


class PointsResult(BaseModel):
    base_points: int
    final_points: int
    locked: bool
    boost_multiplier: int
    boost1_active: bool
    boost2_active: bool


class ComputedDashboardView(BaseModel):
    player_id: str
    player_name: str
    team_type: TeamType
    base_points: int
    total_points: int
    points_locked: bool
    boost_multiplier: int
    current_cycle_day: int
    total_cycle_days: int
    days_remaining_in_cycle: int
    is_data_from_collection: bool
    primary_goal: GoalMetric
    secondary_goal1: GoalMetric
    secondary_goal2: GoalMetric
