"""Admin login, token verification and logout."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from nobar.api.deps import get_auth_service, require_admin
from nobar.services.auth import AuthError, AuthService

router = APIRouter(prefix="/auth")


class LoginRequest(BaseModel):
    username: Optional[str] = None   # username or email
    password: Optional[str] = None


@router.post("/login")
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password required")
    try:
        token, user = await auth.login(body.username, body.password)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"success": True, "token": token, "user": user}


@router.get("/verify")
async def verify(claims: dict = Depends(require_admin)):
    return {"success": True, "user": claims}


@router.post("/logout")
async def logout():
    """Tokens are stateless; the client just discards its copy."""
    return {"success": True, "message": "Logged out"}
