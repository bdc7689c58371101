"""
Protected resource router.

Every route requires "Authorization: Bearer <token>" and is charged against
both the general API limit and the stricter sensitive-endpoint limit.
"""
from fastapi import APIRouter, Request

from authapi.auth.pipeline import Pipeline, ShortCircuit, authorize, rate_limit
from authapi.auth.rate_limiter import PolicyId

router = APIRouter(tags=["protected"])

SENSITIVE_PIPELINE = Pipeline(rate_limit(PolicyId.API), rate_limit(PolicyId.SENSITIVE))
GREETING_PIPELINE = SENSITIVE_PIPELINE.then(authorize("profile_access"))
PROFILE_PIPELINE = SENSITIVE_PIPELINE.then(authorize("detailed_profile_access"))
VALIDATE_PIPELINE = SENSITIVE_PIPELINE.then(authorize("token_validation"))


@router.get("")
async def protected_root(request: Request):
    """Greet the authenticated user."""
    outcome = GREETING_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response
    return {"message": f"Hello, {outcome.identity.username}! This is your profile."}


@router.get("/profile")
async def profile(request: Request):
    """Return the decoded token claims."""
    outcome = PROFILE_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response
    return {
        "user": outcome.identity.to_dict(),
        "message": "Profile retrieved successfully",
    }


@router.post("/validate")
async def validate_token(request: Request):
    """Confirm the presented token is valid."""
    outcome = VALIDATE_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response
    return {
        "valid": True,
        "message": "Token is valid",
        "user": {"username": outcome.identity.username},
    }
