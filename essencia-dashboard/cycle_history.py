# essencia-dashboard/cycle_history.py
"""
Per-player cycle history.

Stored reports are grouped into reporting cycles. A cycle starts on the report
date minus its cycle day, and a report joins the open cycle when its computed
start falls inside that cycle. Each cycle keeps the percentages of its last
report as final metrics, plus a timeline of every upload.
"""
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

import config
import scoring
import utils
from models import ReportRecord

logger = logging.getLogger(__name__)


class ProgressPoint(BaseModel):
    date: str
    day_in_cycle: int
    upload_sequence: int
    metrics: Dict[str, float]

class CycleHistory(BaseModel):
    cycle_number: int
    start_date: str
    end_date: str
    total_days: int
    completion_status: str
    final_metrics: Dict[str, float]
    performance: float
    progress_timeline: List[ProgressPoint]

class CyclePerformance(BaseModel):
    cycle_number: int
    performance: float

class CycleSummaryStats(BaseModel):
    total_cycles: int
    average_performance: float
    best_cycle: Optional[CyclePerformance] = None
    worst_cycle: Optional[CyclePerformance] = None
    improvement_trend: str = "stable"

class CycleComparison(BaseModel):
    cycle1: Optional[CycleHistory] = None
    cycle2: Optional[CycleHistory] = None
    improvements: Dict[str, float]
    summary: str


def _dated_reports(documents: Iterable[Any]) -> List[Tuple[date, ReportRecord]]:
    dated = []
    for document in documents or []:
        try:
            record = ReportRecord.model_validate(document)
        except ValidationError as e:
            logger.warning("Skipping malformed report in history: %s", e.errors()[:3])
            continue
        reported = utils.parse_report_date(record.report_date) or utils.parse_report_date(record.time)
        if reported is None:
            logger.warning("Skipping report %s without a date", record.id)
            continue
        dated.append((reported.date(), record))
    dated.sort(key=lambda item: item[0])
    return dated

def report_metrics(record: ReportRecord, metric_names: Optional[List[str]] = None) -> Dict[str, float]:
    """Sanitized percentages of a report; named metrics missing from it count as 0."""
    if metric_names:
        return {name: scoring.sanitize_percentage(getattr(record, name, None)) for name in metric_names}
    return {
        name: scoring.sanitize_percentage(getattr(record, name))
        for name in config.METRICS
        if getattr(record, name) is not None
    }

def _performance(metrics: Dict[str, float]) -> float:
    mean = sum(metrics.values()) / len(metrics) if metrics else 0.0
    return utils.round_half_up(mean, 2) if math.isfinite(mean) else 0.0

def group_reports_into_cycles(
    documents: Iterable[Any],
    metric_names: Optional[List[str]] = None,
    today: Optional[date] = None,
) -> List[CycleHistory]:
    """Cycles for a player's stored reports, most recent first, numbered from 1 (oldest)."""
    today = today or datetime.now(timezone.utc).date()
    groups: List[Dict[str, Any]] = []
    for reported, record in _dated_reports(documents):
        day = max(1, utils.current_cycle_day(record.current_cycle_day, reported))
        total = utils.total_cycle_days(record.total_cycle_days)
        start = reported - timedelta(days=day - 1)
        if groups and start <= groups[-1]["end"]:
            groups[-1]["reports"].append((reported, day, record))
            continue
        groups.append({
            "start": start,
            "end": start + timedelta(days=total - 1),
            "total": total,
            "reports": [(reported, day, record)],
        })

    cycles = []
    for number, group in enumerate(groups, start=1):
        timeline = [
            ProgressPoint(
                date=reported.isoformat(),
                day_in_cycle=day,
                upload_sequence=sequence,
                metrics=report_metrics(record, metric_names),
            )
            for sequence, (reported, day, record) in enumerate(group["reports"], start=1)
        ]
        final_metrics = timeline[-1].metrics
        cycles.append(CycleHistory(
            cycle_number=number,
            start_date=group["start"].isoformat(),
            end_date=group["end"].isoformat(),
            total_days=group["total"],
            completion_status="completed" if group["end"] < today else "in_progress",
            final_metrics=final_metrics,
            performance=_performance(final_metrics),
            progress_timeline=timeline,
        ))

    cycles.reverse()
    logger.info("Grouped reports into %d cycles", len(cycles))
    return cycles

def cycle_summary_stats(cycles: List[CycleHistory]) -> CycleSummaryStats:
    if not cycles:
        return CycleSummaryStats(total_cycles=0, average_performance=0)

    chronological = sorted(cycles, key=lambda c: c.cycle_number)
    performances = [CyclePerformance(cycle_number=c.cycle_number, performance=c.performance) for c in chronological]
    average = sum(p.performance for p in performances) / len(performances)

    # Later half against earlier half, once there are enough cycles to compare.
    trend = "stable"
    if len(performances) >= config.TREND_MIN_CYCLES:
        mid = len(performances) // 2
        earlier = sum(p.performance for p in performances[:mid]) / mid
        later = sum(p.performance for p in performances[mid:]) / (len(performances) - mid)
        if later - earlier > config.TREND_THRESHOLD:
            trend = "improving"
        elif later - earlier < -config.TREND_THRESHOLD:
            trend = "declining"

    return CycleSummaryStats(
        total_cycles=len(performances),
        average_performance=utils.round_half_up(average) if math.isfinite(average) else 0.0,
        best_cycle=max(performances, key=lambda p: p.performance),
        worst_cycle=min(performances, key=lambda p: p.performance),
        improvement_trend=trend,
    )

def _comparison_summary(delta: float) -> str:
    for lower_bound, template in config.COMPARISON_BANDS:
        if delta > lower_bound:
            return template.format(delta=delta)
    return config.COMPARISON_DECLINE.format(delta=abs(delta))

def compare_cycles(cycles: List[CycleHistory], cycle1_number: int, cycle2_number: int) -> CycleComparison:
    """Change from cycle1 to cycle2 for each metric both cycles reported."""
    by_number = {c.cycle_number: c for c in cycles}
    first, second = by_number.get(cycle1_number), by_number.get(cycle2_number)
    if first is None or second is None:
        return CycleComparison(cycle1=first, cycle2=second, improvements={}, summary="Não foi possível comparar os ciclos.")

    improvements = {
        name: utils.round_half_up(second.final_metrics[name] - value, 2)
        for name, value in first.final_metrics.items()
        if name in second.final_metrics
    }
    return CycleComparison(
        cycle1=first,
        cycle2=second,
        improvements=improvements,
        summary=_comparison_summary(sum(improvements.values())),
    )
