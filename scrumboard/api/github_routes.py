# scrumboard/api/github_routes.py
from fastapi import APIRouter, Depends

from scrumboard.api.deps import get_token_provider
from scrumboard.core.auth import Principal, get_current_principal
from scrumboard.services.github_token_service import TokenProvider

router = APIRouter(prefix="/github", tags=["github"])


@router.get("/me")
async def github_me(
    principal: Principal = Depends(get_current_principal),
    tokens: TokenProvider = Depends(get_token_provider),
):
    username = await tokens.get_github_username(principal.id)
    return {"connected": username is not None, "github_username": username}
