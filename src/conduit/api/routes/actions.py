"""Custom actions invoked by the GraphQL data layer."""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from conduit.dependencies import AppContainer
from conduit.errors.exceptions import ConduitError
from conduit.models.user import CreateUserActionInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actions", tags=["Actions"])


def _action_error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"message": message, "code": code}})


@router.post("/create-user")
async def create_user_action(request: Request, container: AppContainer):
    """Provision a user. Accepts the input bare or wrapped as ``{action, input}``."""
    try:
        body = json.loads(await request.body())
    except ValueError:
        return _action_error(400, "Request body is not JSON", "MALFORMED_PAYLOAD")
    if isinstance(body, dict) and isinstance(body.get("input"), dict):
        body = body["input"]

    try:
        action_input = CreateUserActionInput.model_validate(body)
    except PydanticValidationError as exc:
        return _action_error(400, f"Invalid create-user input: {exc.error_count()} error(s)", "VALIDATION_ERROR")

    try:
        user = await container.saga.provision_user(action_input.id, action_input.email, action_input.to_options())
    except ConduitError as exc:
        logger.warning("create-user action failed for %s: %s", action_input.id, exc.message)
        return _action_error(exc.status_code, exc.message, exc.code)

    return {"user": user.model_dump(mode="json")}
