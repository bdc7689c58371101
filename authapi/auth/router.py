"""
Authentication router.

This module provides FastAPI router for authentication endpoints:
- User registration
- User login
- Public user listing
"""
import json
from typing import Type, TypeVar

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from authapi.auth.pipeline import Pipeline, ShortCircuit, rate_limit
from authapi.auth.rate_limiter import PolicyId
from authapi.auth.users import UserCreate, UserLogin
from authapi.errors import ValidationError

router = APIRouter(tags=["auth"])

ModelT = TypeVar("ModelT", bound=BaseModel)

API_PIPELINE = Pipeline(rate_limit(PolicyId.API))
REGISTER_PIPELINE = API_PIPELINE.then(rate_limit(PolicyId.REGISTER))
LOGIN_PIPELINE = API_PIPELINE.then(rate_limit(PolicyId.LOGIN))


async def read_body(request: Request, model: Type[ModelT]) -> ModelT:
    """
    Parse a JSON request body into model.

    An empty body parses as an empty object so missing fields are reported
    by the service rather than as a parse error.

    Raises:
        ValidationError: If the body is not a JSON object matching model
    """
    raw = await request.body()
    try:
        data = json.loads(raw) if raw else {}
        return model.model_validate(data)
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError("Invalid request body") from e


@router.post("/register", status_code=201)
async def register_user(request: Request):
    """
    Register a new user.

    Rate limited to 3 attempts per hour per client address. No token is
    issued; the client logs in afterwards.
    """
    outcome = REGISTER_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response

    body = await read_body(request, UserCreate)
    user = await outcome.container.users.register(
        body.username, body.password, ip=outcome.client
    )
    return JSONResponse(status_code=201, content={
        "message": "User registered successfully",
        "user": user.model_dump(),
    })


@router.post("/login")
async def login(request: Request):
    """
    Authenticate a user and return a token.

    Rate limited to 5 attempts per 15 minutes per client address, counting
    successful and failed attempts alike.
    """
    outcome = LOGIN_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response

    body = await read_body(request, UserLogin)
    result = await outcome.container.users.login(
        body.username, body.password, ip=outcome.client, user_agent=outcome.user_agent
    )
    return {
        "token": result.token,
        "message": "Login successful",
        "user": result.user.model_dump(),
    }


@router.get("/users")
async def list_users(request: Request):
    """List registered usernames. Unauthenticated; exposes no credentials."""
    outcome = API_PIPELINE.run(request)
    if isinstance(outcome, ShortCircuit):
        return outcome.response

    users = await outcome.container.users.list_users()
    return {"users": [u.model_dump() for u in users]}
