# essencia-dashboard/reconciler.py
"""Compares freshly parsed report data with the latest stored record."""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

import utils
from models import ReportRecord

logger = logging.getLogger(__name__)

COMPARED_FIELDS = [
    "atividade",
    "reais_por_ativo",
    "faturamento",
    "multimarcas_por_ativo",
    "conversoes",
    "upa",
    "current_cycle_day",
    "total_cycle_days",
]


class PlayerComparison(BaseModel):
    player_id: str
    has_changes: bool
    differences: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class BatchComparison(BaseModel):
    total_players: int
    players_with_changes: int
    total_differences: int
    comparisons: List[PlayerComparison]

    @property
    def changed_player_ids(self) -> List[str]:
        return [c.player_id for c in self.comparisons if c.has_changes]


def _as_fields(data: Union[ReportRecord, Dict[str, Any], None]) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, ReportRecord):
        return data.model_dump()
    return dict(data)

def _values_equal(old: Any, new: Any) -> bool:
    old_num, new_num = utils.to_number(old), utils.to_number(new)
    if old_num is not None and new_num is not None:
        if math.isnan(old_num) and math.isnan(new_num):
            return True
        return old_num == new_num
    return old == new

def compare_player_data(
    player_id: str,
    new_data: Union[ReportRecord, Dict[str, Any]],
    stored: Union[ReportRecord, Dict[str, Any], None],
) -> PlayerComparison:
    new_fields = _as_fields(new_data)
    if stored is None:
        return PlayerComparison(
            player_id=player_id,
            has_changes=True,
            differences={"all": {"old": None, "new": new_fields}},
        )

    old_fields = _as_fields(stored)
    differences = {}
    for field in COMPARED_FIELDS:
        new_value = new_fields.get(field)
        if new_value is None:
            continue
        old_value = old_fields.get(field)
        if not _values_equal(old_value, new_value):
            differences[field] = {"old": old_value, "new": new_value}

    return PlayerComparison(player_id=player_id, has_changes=bool(differences), differences=differences)

def compare_report_batch(
    records: Iterable[ReportRecord],
    latest_by_player: Dict[str, Union[ReportRecord, Dict[str, Any]]],
) -> BatchComparison:
    comparisons = []
    for record in records:
        stored = latest_by_player.get(record.player_id)
        if isinstance(stored, dict):
            try:
                stored = ReportRecord.model_validate(stored)
            except ValidationError as e:
                logger.warning("Ignoring malformed stored report for %s: %s", record.player_id, e.errors()[:3])
                stored = None
        comparisons.append(compare_player_data(record.player_id, record, stored))

    changed = [c for c in comparisons if c.has_changes]
    total_differences = sum(len(c.differences) for c in changed)
    logger.info("Compared %d players: %d with changes", len(comparisons), len(changed))
    return BatchComparison(
        total_players=len(comparisons),
        players_with_changes=len(changed),
        total_differences=total_differences,
        comparisons=comparisons,
    )
