# essencia-dashboard/cycle_change.py
"""
End-of-cycle workflow.

Runs the provider's cycle schedulers one at a time, in the configured order.
After each scheduler it waits for the provider to settle, then checks that
the step took effect. The first failing step stops the run.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

import config
import funifier_client
import utils
from errors import ApiError, ErrorType

logger = logging.getLogger(__name__)

_run_lock = threading.Lock()


class StepCheck(BaseModel):
    success: bool
    message: str
    players_checked: int = 0
    offending_players: List[str] = Field(default_factory=list)

class CycleChangeStep(BaseModel):
    index: int
    name: str
    description: str
    scheduler_id: str
    status: str = "pending"
    message: Optional[str] = None
    check: Optional[StepCheck] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class CycleChangeRun(BaseModel):
    status: str
    steps: List[CycleChangeStep]
    completed_steps: int = 0
    failed_steps: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)

def planned_steps() -> List[CycleChangeStep]:
    return [
        CycleChangeStep(
            index=index,
            name=scheduler["name"],
            description=scheduler["description"],
            scheduler_id=scheduler["id"],
        )
        for index, scheduler in enumerate(config.CYCLE_SCHEDULERS)
    ]


# --- Step checks ---

def players_holding_points(statuses: Iterable[Dict[str, Any]], category: str) -> List[str]:
    offending = []
    for status in statuses or []:
        amount = utils.to_number((status.get("point_categories") or {}).get(category))
        if amount is not None and amount > 0:
            offending.append(status.get("_id"))
    return offending

def players_with_leftover_items(statuses: Iterable[Dict[str, Any]]) -> List[str]:
    """Players whose items are not all zeroed, except exactly one locked item."""
    offending = []
    for status in statuses or []:
        items = status.get("catalog_items") or {}
        expected = {item_id: 0 for item_id in items}
        expected[config.LOCKED_ITEM_ID] = 1
        if any(utils.to_number(items.get(item_id)) != count for item_id, count in expected.items()):
            offending.append(status.get("_id"))
    return offending

def check_step(check: str, token: str) -> StepCheck:
    if check == "action_log_cleared":
        cleared = not funifier_client.get_action_logs(token, max_results=1)
        return StepCheck(
            success=cleared,
            message="Action log está vazio" if cleared else "Action log ainda contém entradas",
        )

    statuses = [s for s in funifier_client.get_all_player_statuses(token) if isinstance(s, dict)]
    if check == "points_cleared":
        offending = players_holding_points(statuses, "points")
        label = "ainda têm pontos"
    elif check == "locked_points_cleared":
        offending = players_holding_points(statuses, "locked_points")
        label = "ainda têm pontos bloqueados"
    elif check == "virtual_goods_cleared":
        offending = players_with_leftover_items(statuses)
        label = "têm itens incorretos"
    else:
        raise ApiError(ErrorType.VALIDATION_ERROR, f"Unknown cycle step check '{check}'")

    return StepCheck(
        success=not offending,
        message=f"{len(statuses)} jogadores verificados" if not offending else f"{len(offending)} jogadores {label}",
        players_checked=len(statuses),
        offending_players=offending,
    )


# --- Run ---

def _execute_step(step: CycleChangeStep, check: str, token: str, settle_seconds: float) -> None:
    step.status = "running"
    step.started_at = _now()
    logger.info("Cycle change step %d: %s (%s)", step.index + 1, step.name, step.scheduler_id)
    try:
        funifier_client.execute_scheduler(step.scheduler_id, token)
        if settle_seconds:
            time.sleep(settle_seconds)
        step.check = check_step(check, token)
    except ApiError as e:
        logger.error("Cycle change step %d failed: %s", step.index + 1, e.message)
        step.status = "failed"
        step.message = e.message
    else:
        step.status = "completed" if step.check.success else "failed"
        step.message = step.check.message
    step.finished_at = _now()

def run_cycle_change(token: str, settle_seconds: float = config.CYCLE_CHANGE_SETTLE_SECONDS) -> CycleChangeRun:
    if not _run_lock.acquire(blocking=False):
        raise ApiError(ErrorType.VALIDATION_ERROR, "Cycle change is already running")
    try:
        run = CycleChangeRun(status="running", steps=planned_steps(), started_at=_now())
        for step, scheduler in zip(run.steps, config.CYCLE_SCHEDULERS):
            _execute_step(step, scheduler["check"], token, settle_seconds)
            if step.status == "failed":
                break

        run.completed_steps = sum(1 for s in run.steps if s.status == "completed")
        run.failed_steps = sum(1 for s in run.steps if s.status == "failed")
        run.status = "failed" if run.failed_steps else "completed"
        run.finished_at = _now()
        logger.info("Cycle change %s: %d/%d steps completed", run.status, run.completed_steps, len(run.steps))
        return run
    finally:
        _run_lock.release()

def step_logs(index: int, token: str, max_results: int = 50) -> List[Dict[str, Any]]:
    if not 0 <= index < len(config.CYCLE_SCHEDULERS):
        raise ApiError(ErrorType.VALIDATION_ERROR, f"No cycle change step {index}")
    return funifier_client.get_scheduler_logs(config.CYCLE_SCHEDULERS[index]["id"], token, max_results=max_results)
