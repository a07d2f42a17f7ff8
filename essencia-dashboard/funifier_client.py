import os
import json
import logging
import requests
import httpx
from dotenv import load_dotenv
from typing import Any, Dict, List, Optional

import config
from errors import ApiError, ErrorType, from_httpx_exception, from_requests_exception

load_dotenv()

logger = logging.getLogger(__name__)

API_KEY = os.getenv("FUNIFIER_API_KEY")
BASE_URL = os.getenv("FUNIFIER_BASE_URL", "https://service2.funifier.com/v3").rstrip("/")

AUTH_TIMEOUT = 10
REQUEST_TIMEOUT = 20
AGGREGATE_TIMEOUT = 25
SCHEDULER_TIMEOUT = 60


def _headers(token: Optional[str]) -> Dict[str, str]:
    if not token:
        raise ApiError(ErrorType.AUTHENTICATION_ERROR, "No valid authentication token available")
    if not token.startswith(("Bearer ", "Basic ")):
        token = f"Bearer {token}"
    return {"Authorization": token, "Content-Type": "application/json"}

def _latest_report_pipeline(player_id: str) -> List[Dict[str, Any]]:
    return [
        {"$match": {"playerId": player_id, "status": "REGISTERED", "time": {"$exists": True}}},
        {"$sort": {"time": -1}},
        {"$limit": 1},
    ]


# --- Synchronous Functions ---

def _request(method: str, path: str, context: str, token: Optional[str] = None, timeout: float = REQUEST_TIMEOUT, **kwargs):
    headers = _headers(token) if token is not None else {"Content-Type": "application/json"}
    try:
        response = requests.request(method, f"{BASE_URL}{path}", headers=headers, timeout=timeout, **kwargs)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise from_requests_exception(e, context)
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        raise ApiError(ErrorType.DATA_PROCESSING_ERROR, f"Invalid JSON from provider during '{context}'")

# --- Auth ---
def authenticate(username: str, password: str) -> Dict[str, Any]:
    payload = {"apiKey": API_KEY, "grant_type": "password", "username": username, "password": password}
    data = _request("POST", "/auth/token", "authenticate", json=payload, timeout=AUTH_TIMEOUT)
    if not data or not data.get("access_token"):
        raise ApiError(ErrorType.AUTHENTICATION_ERROR, "Credenciais inválidas ou sessão expirada")
    logger.info("Authenticated player %s", username)
    return data

def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    payload = {"apiKey": API_KEY, "grant_type": "refresh_token", "refresh_token": refresh_token}
    data = _request("POST", "/auth/refresh", "refresh token", json=payload, timeout=AUTH_TIMEOUT)
    if not data or not data.get("access_token"):
        raise ApiError(ErrorType.AUTHENTICATION_ERROR, "Credenciais inválidas ou sessão expirada")
    return data

# --- Players ---
def get_player_status(player_id: str, token: str) -> Dict[str, Any]:
    return _request("GET", "/player_status", f"get player status {player_id}", token, params={"id": player_id}) or {}

def get_my_status(token: str) -> Dict[str, Any]:
    """Status of the player who owns the token."""
    return _request("GET", "/player/me/status", "get own player status", token) or {}

def get_all_player_statuses(token: str, max_results: int = 1000) -> List[Dict[str, Any]]:
    return _request(
        "GET", "/player/status", "get all player statuses", token,
        params={"max_results": max_results}, timeout=AGGREGATE_TIMEOUT,
    ) or []

def get_players(token: str) -> List[Dict[str, Any]]:
    return _request("GET", "/player", "get players", token) or []

def get_player(player_id: str, token: str) -> Dict[str, Any]:
    return _request("GET", f"/player/{player_id}", f"get player {player_id}", token) or {}

def create_player(player: Dict[str, Any], token: str) -> Dict[str, Any]:
    return _request("POST", "/player", f"create player {player.get('_id')}", token, json=player) or {}

def delete_player(player_id: str, token: str) -> None:
    _request("DELETE", f"/player/{player_id}", f"delete player {player_id}", token)
    logger.info("Deleted player %s", player_id)

# --- Teams ---
def get_teams(token: str) -> List[Dict[str, Any]]:
    return _request("GET", "/team", "get teams", token) or []

def get_team_members(team_id: str, token: str) -> List[Dict[str, Any]]:
    return _request("GET", f"/team/{team_id}/member", f"get members of team {team_id}", token) or []

def add_team_member(team_id: str, player_id: str, token: str) -> None:
    _request("POST", f"/team/{team_id}/member/add/{player_id}", f"add {player_id} to team {team_id}", token)

def remove_team_member(team_id: str, player_id: str, token: str) -> None:
    _request("POST", f"/team/{team_id}/member/remove/{player_id}", f"remove {player_id} from team {team_id}", token)

# --- Store ---
def get_virtual_goods_items(token: str) -> List[Dict[str, Any]]:
    return _request("GET", "/virtualgoods/item", "get virtual goods items", token) or []

def get_catalogs(token: str) -> List[Dict[str, Any]]:
    return _request("GET", "/virtualgoods/catalog", "get catalogs", token) or []

# --- Custom Collections ---
def insert_record(collection: str, record: Dict[str, Any], token: str) -> Dict[str, Any]:
    """Inserts a document; an existing `_id` is replaced."""
    return _request("POST", f"/database/{collection}", f"insert into {collection}", token, json=record) or record

def bulk_insert_records(collection: str, records: List[Dict[str, Any]], token: str) -> Dict[str, Any]:
    if not records:
        return {"inserted": 0}
    result = _request(
        "POST", f"/database/{collection}/bulk", f"bulk insert into {collection}", token,
        json=records, timeout=AGGREGATE_TIMEOUT,
    )
    logger.info("Bulk inserted %d records into %s", len(records), collection)
    return result or {"inserted": len(records)}

def get_records(collection: str, token: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    params = {"filter": json.dumps(filter)} if filter else None
    return _request("GET", f"/database/{collection}", f"get records from {collection}", token, params=params) or []

def aggregate_records(collection: str, pipeline: List[Dict[str, Any]], token: str) -> List[Dict[str, Any]]:
    return _request(
        "POST", f"/database/{collection}/aggregate", f"aggregate {collection}", token,
        params={"strict": "true"}, json=pipeline, timeout=AGGREGATE_TIMEOUT,
    ) or []

def get_latest_reports_by_player(player_ids: List[str], token: str) -> Dict[str, Dict[str, Any]]:
    """Latest REGISTERED report per player, keyed by player id."""
    if not player_ids:
        return {}
    pipeline = [
        {"$match": {"playerId": {"$in": list(player_ids)}, "status": "REGISTERED", "time": {"$exists": True}}},
        {"$sort": {"time": -1}},
        {"$group": {"_id": "$playerId", "latest": {"$first": "$$ROOT"}}},
    ]
    results = aggregate_records(config.REPORT_COLLECTION, pipeline, token)
    return {row["_id"]: row["latest"] for row in results if row.get("_id") and row.get("latest")}

def get_player_report_history(player_id: str, token: str, limit: int = 50) -> List[Dict[str, Any]]:
    pipeline = [
        {"$match": {"playerId": player_id, "time": {"$exists": True}}},
        {"$sort": {"time": -1}},
        {"$limit": limit},
    ]
    return aggregate_records(config.REPORT_COLLECTION, pipeline, token)

def get_registered_reports(player_id: str, token: str) -> List[Dict[str, Any]]:
    return get_records(config.REPORT_COLLECTION, token, filter={"playerId": player_id, "status": "REGISTERED"})

# --- Schedulers ---
def execute_scheduler(scheduler_id: str, token: str) -> Dict[str, Any]:
    result = _request(
        "GET", f"/scheduler/execute/{scheduler_id}", f"execute scheduler {scheduler_id}", token,
        timeout=SCHEDULER_TIMEOUT,
    )
    logger.info("Executed scheduler %s", scheduler_id)
    return result if isinstance(result, dict) else {}

def get_scheduler_logs(scheduler_id: str, token: str, max_results: int = 50) -> List[Dict[str, Any]]:
    params = {"item": scheduler_id, "max_results": max_results, "orderby": "time", "reverse": "true"}
    return _request("GET", "/scheduler/log", f"get logs of scheduler {scheduler_id}", token, params=params) or []

def get_action_logs(token: str, max_results: int = 1) -> List[Dict[str, Any]]:
    return _request("GET", "/action/log", "get action logs", token, params={"max_results": max_results}) or []


# --- Asynchronous Functions ---

async def _request_async(method: str, path: str, context: str, token: str, timeout: float = REQUEST_TIMEOUT, **kwargs):
    headers = _headers(token)
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.request(method, f"{BASE_URL}{path}", headers=headers, **kwargs)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise from_httpx_exception(e, context)
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        raise ApiError(ErrorType.DATA_PROCESSING_ERROR, f"Invalid JSON from provider during '{context}'")

async def get_player_status_async(player_id: str, token: str) -> Dict[str, Any]:
    return await _request_async("GET", "/player_status", f"get player status {player_id}", token, params={"id": player_id}) or {}

async def aggregate_records_async(collection: str, pipeline: List[Dict[str, Any]], token: str) -> List[Dict[str, Any]]:
    return await _request_async(
        "POST", f"/database/{collection}/aggregate", f"aggregate {collection}", token,
        timeout=AGGREGATE_TIMEOUT, params={"strict": "true"}, json=pipeline,
    ) or []

async def get_latest_player_report_async(player_id: str, token: str) -> Optional[Dict[str, Any]]:
    results = await aggregate_records_async(config.REPORT_COLLECTION, _latest_report_pipeline(player_id), token)
    return results[0] if results else None

async def get_document_async(collection: str, document_id: str, token: str) -> Optional[Dict[str, Any]]:
    params = {"filter": json.dumps({"_id": document_id})}
    results = await _request_async("GET", f"/database/{collection}", f"get {document_id} from {collection}", token, params=params)
    return results[0] if results else None
