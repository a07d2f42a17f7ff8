from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from typing import Optional

import funifier_client
import identification
from errors import ApiError, ErrorType

router = APIRouter()

# --- Pydantic Models ---
class AuthRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None


# --- Dependencies ---
def require_token(authorization: Optional[str] = Header(None)) -> str:
    """Bearer token from the Authorization header, passed through to the provider."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise ApiError(ErrorType.AUTHENTICATION_ERROR, "Missing bearer token")
    token = authorization[len("bearer "):].strip()
    if not token:
        raise ApiError(ErrorType.AUTHENTICATION_ERROR, "Missing bearer token")
    return token

def require_admin(token: str = Depends(require_token)) -> str:
    """Token of a member of the admin team; anyone else gets 403."""
    status = funifier_client.get_my_status(token)
    if not identification.is_admin(status.get("teams") if isinstance(status, dict) else None):
        raise HTTPException(status_code=403, detail="Admin access required")
    return token


# --- API Endpoints ---
@router.post("/auth", response_model=TokenResponse, tags=["Auth"])
def login(body: AuthRequest):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    data = funifier_client.authenticate(body.username, body.password)
    return TokenResponse(
        access_token=data["access_token"],
        token_type=data.get("token_type") or "Bearer",
        expires_in=data.get("expires_in"),
        refresh_token=data.get("refresh_token"),
    )

@router.post("/auth/refresh", response_model=TokenResponse, tags=["Auth"])
def refresh(body: RefreshRequest):
    if not body.refresh_token:
        raise HTTPException(status_code=400, detail="refresh_token is required")
    data = funifier_client.refresh_access_token(body.refresh_token)
    return TokenResponse(
        access_token=data["access_token"],
        token_type=data.get("token_type") or "Bearer",
        expires_in=data.get("expires_in"),
        refresh_token=data.get("refresh_token") or body.refresh_token,
    )
