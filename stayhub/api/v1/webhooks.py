"""Webhook endpoints for payment providers."""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.api.deps import get_payme_service
from stayhub.config import Settings, get_settings
from stayhub.core.exceptions import PaymeError, PaymeTransactionError
from stayhub.core.security import verify_payme_authorization
from stayhub.database import get_db
from stayhub.schemas.payme import PaymeRpcRequest
from stayhub.services.payme_service import PaymeService

logger = logging.getLogger(__name__)

router = APIRouter()


def _rpc_error(error: PaymeTransactionError) -> JSONResponse:
    # Payme treats any non-200 answer as a delivery failure and retries
    return JSONResponse(status_code=status.HTTP_200_OK, content=error.to_response())


@router.post("/payme", status_code=status.HTTP_200_OK)
async def payme_webhook(
    request: Request,
    service: Annotated[PaymeService, Depends(get_payme_service)],
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> JSONResponse:
    """Handle a Payme Merchant API JSON-RPC call."""
    try:
        payload: Any = json.loads(await request.body())
    except (ValueError, UnicodeDecodeError):
        logger.warning("Payme webhook body is not valid JSON")
        return _rpc_error(PaymeTransactionError(PaymeError.PARSE_ERROR))

    request_id = payload.get("id") if isinstance(payload, dict) else None

    try:
        verify_payme_authorization(authorization, settings, request_id)

        try:
            rpc = PaymeRpcRequest.model_validate(payload)
        except PydanticValidationError:
            raise PaymeTransactionError(PaymeError.INVALID_REQUEST, request_id)

        result = await service.dispatch(rpc.method, rpc.params, rpc.id)

    except PaymeTransactionError as exc:
        # Keep side effects such as expiry cancellations made before the error
        await db.commit()
        logger.warning(f"Payme call {request_id} answered with {exc.error.name} ({exc.code})")
        return _rpc_error(exc)

    except Exception:
        await db.rollback()
        logger.exception(f"Unexpected error while handling Payme call {request_id}")
        return _rpc_error(PaymeTransactionError(PaymeError.INTERNAL_ERROR, request_id))

    await db.commit()
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"result": result, "id": rpc.id},
    )
