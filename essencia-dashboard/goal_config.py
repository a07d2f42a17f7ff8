# essencia-dashboard/goal_config.py
"""
Team goal configuration: registry defaults plus the admin-edited document
stored in the provider's dashboard collection.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

import config
import funifier_client
from errors import ApiError, ErrorType
from models import (
    BoostConfig,
    DashboardConfiguration,
    GoalConfig,
    TeamGoalConfig,
    TeamType,
    UnlockRule,
)

logger = logging.getLogger(__name__)

GOAL_SLOTS = ("primary_goal", "secondary_goal1", "secondary_goal2")
BOOST_ITEMS = (config.CATALOG_ITEMS["boost_secondary_1"], config.CATALOG_ITEMS["boost_secondary_2"])


# --- Defaults ---

def _goal_from_registry(team: str, metric: str, boost_item: Optional[str] = None) -> GoalConfig:
    meta = config.METRICS[metric]
    return GoalConfig(
        name=metric,
        display_name=meta["display_name"],
        challenge_ids=list(config.CHALLENGE_IDS.get(team, {}).get(metric, [])),
        emoji=meta["emoji"],
        unit=meta["unit"],
        boost=BoostConfig(catalog_item_id=boost_item, name=f"Boost {meta['display_name']}") if boost_item else None,
    )

def default_team_config(team_type: TeamType) -> TeamGoalConfig:
    team = team_type.value
    rules = config.TEAM_GOALS[team]
    secondary1, secondary2 = rules["secondary"]
    return TeamGoalConfig(
        team_type=team_type,
        display_name=rules["display_name"],
        unlock_rule=UnlockRule(rules["unlock_rule"]),
        unlock_catalog_item=config.CATALOG_ITEMS["unlock_points"],
        unlock_threshold=config.UNLOCK_THRESHOLD,
        primary_goal=_goal_from_registry(team, rules["primary"]),
        secondary_goal1=_goal_from_registry(team, secondary1, BOOST_ITEMS[0]),
        secondary_goal2=_goal_from_registry(team, secondary2, BOOST_ITEMS[1]),
    )

def default_configurations() -> Dict[TeamType, TeamGoalConfig]:
    return {team_type: default_team_config(team_type) for team_type in TeamType}

def default_dashboard_configuration() -> DashboardConfiguration:
    return DashboardConfiguration(version="default", updated_by="system", configurations=default_configurations())


# --- Merge stored document over defaults ---

def _merge_team(default: TeamGoalConfig, stored: Dict[str, Any]) -> TeamGoalConfig:
    merged = default.model_dump()
    for key, value in stored.items():
        if key in GOAL_SLOTS and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        elif key != "team_type":
            merged[key] = value
    return TeamGoalConfig.model_validate(merged)

def merge_configurations(document: Optional[Dict[str, Any]]) -> Dict[TeamType, TeamGoalConfig]:
    """Each stored team overrides its registry default; invalid teams keep the default."""
    configurations = default_configurations()
    stored = document.get("configurations") if isinstance(document, dict) else None
    if not isinstance(stored, dict):
        if stored:
            logger.warning("Stored configurations are not a mapping, using defaults")
        return configurations
    for team_type in TeamType:
        team_doc = stored.get(team_type.value)
        if not isinstance(team_doc, dict):
            continue
        try:
            configurations[team_type] = _merge_team(configurations[team_type], team_doc)
        except ValidationError as e:
            logger.warning("Stored configuration for %s is invalid, using defaults: %s", team_type.value, e.errors()[:3])
    return configurations

def _fetch_document(token: str) -> Optional[Dict[str, Any]]:
    results = funifier_client.get_records(
        config.DASHBOARD_CONFIG_COLLECTION, token, filter={"_id": config.DASHBOARD_CONFIG_DOC_ID}
    )
    return results[0] if results else None


# --- Load ---

def load_dashboard_configuration(token: str) -> DashboardConfiguration:
    try:
        document = _fetch_document(token)
    except ApiError as e:
        logger.warning("Could not load dashboard configuration, using defaults: %s", e.message)
        return default_dashboard_configuration()
    if not document:
        return default_dashboard_configuration()
    return DashboardConfiguration(
        version=document.get("version"),
        updated_by=document.get("updatedBy"),
        configurations=merge_configurations(document),
    )

async def load_team_configs_async(token: str) -> Dict[TeamType, TeamGoalConfig]:
    try:
        document = await funifier_client.get_document_async(
            config.DASHBOARD_CONFIG_COLLECTION, config.DASHBOARD_CONFIG_DOC_ID, token
        )
    except ApiError as e:
        logger.warning("Could not load dashboard configuration, using defaults: %s", e.message)
        return default_configurations()
    return merge_configurations(document)


# --- Validate / Save ---

def validate_configuration(configuration: DashboardConfiguration) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
    """Returns (errors, warnings), each a list of {field, message}."""
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []

    missing = [t.value for t in TeamType if t not in configuration.configurations]
    if missing:
        errors.append({"field": "configurations", "message": f"Missing configurations for team types: {', '.join(missing)}"})

    for team_type, team_config in configuration.configurations.items():
        prefix = team_type.value
        if team_config.team_type != team_type:
            errors.append({"field": f"{prefix}.team_type", "message": f"Team type does not match key {prefix}"})

        seen = set()
        for slot in GOAL_SLOTS:
            goal = getattr(team_config, slot)
            if goal.name not in config.METRICS:
                errors.append({"field": f"{prefix}.{slot}.name", "message": f"Unknown metric '{goal.name}'"})
            if goal.name in seen:
                errors.append({"field": f"{prefix}.{slot}.name", "message": f"Metric '{goal.name}' is used twice"})
            seen.add(goal.name)
            if slot != "primary_goal" and (goal.boost is None or not goal.boost.catalog_item_id):
                errors.append({"field": f"{prefix}.{slot}.boost", "message": "Secondary goals need a boost catalog item"})

        if team_config.unlock_rule == UnlockRule.THRESHOLD and team_config.unlock_threshold <= 0:
            errors.append({"field": f"{prefix}.unlock_threshold", "message": "Threshold must be positive"})
        if team_config.unlock_rule == UnlockRule.CATALOG_ITEM and not team_config.unlock_catalog_item:
            errors.append({"field": f"{prefix}.unlock_catalog_item", "message": "Unlock catalog item is required"})

        if team_type == TeamType.CARTEIRA_II and team_config.unlock_rule != UnlockRule.THRESHOLD:
            warnings.append({"field": f"{prefix}.unlock_rule", "message": "Carteira II typically unlocks by threshold"})

    return errors, warnings

def save_configuration(configuration: DashboardConfiguration, token: str, updated_by: Optional[str] = None) -> DashboardConfiguration:
    errors, warnings = validate_configuration(configuration)
    if errors:
        raise ApiError(ErrorType.VALIDATION_ERROR, "Invalid dashboard configuration", details={"errors": errors, "warnings": warnings})
    for warning in warnings:
        logger.warning("Configuration warning on %s: %s", warning["field"], warning["message"])

    version = datetime.now(timezone.utc).isoformat()
    document = {
        "_id": config.DASHBOARD_CONFIG_DOC_ID,
        "version": version,
        "updatedBy": updated_by,
        "configurations": {
            team_type.value: team_config.model_dump(mode="json")
            for team_type, team_config in configuration.configurations.items()
        },
    }
    funifier_client.insert_record(config.DASHBOARD_CONFIG_COLLECTION, document, token)
    logger.info("Saved dashboard configuration version %s", version)
    return DashboardConfiguration(version=version, updated_by=updated_by, configurations=configuration.configurations)
