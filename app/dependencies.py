from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.chat.errors import ChatAPIError, map_chat_error
from app.core.errors import GatewayError, ProviderError
from app.core.pipeline import ChatPipeline


def get_pipeline(request: Request) -> ChatPipeline:
    return request.app.state.pipeline


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ChatAPIError)
    async def handle_chat_error(
        _request: Request,
        exc: ChatAPIError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_error()},
        )

    @app.exception_handler(ProviderError)
    @app.exception_handler(GatewayError)
    async def handle_domain_error(
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        mapped = map_chat_error(exc)
        return JSONResponse(
            status_code=mapped.status_code,
            content={"error": mapped.to_error()},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        first_error = exc.errors()[0]["msg"] if exc.errors() else "Invalid request"

        compat_error = ChatAPIError(
            status_code=400,
            message=first_error,
            error_type="invalid_request_error",
            code="invalid_request",
        )
        return JSONResponse(
            status_code=compat_error.status_code,
            content={"error": compat_error.to_error()},
        )
