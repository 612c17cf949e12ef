import logging
from typing import Callable, Optional

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, Response, status
from fastapi.responses import JSONResponse

from accounts.auth import extract_bearer_token
from accounts.config import Settings, get_settings
from accounts.errors import HandlerError
from accounts.logger_config import setup_logging
from accounts.schemas import ResponseEnvelope
from accounts.services import AccountEraser, OtpIssuer

load_dotenv()

setup_logging(get_settings().LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Account Service")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

# Anything but a preflight is processed like a POST.
HANDLED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def envelope_response(envelope: ResponseEnvelope, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(content=envelope.to_content(), status_code=status_code, headers=CORS_HEADERS)


def server_error_response(exc: Exception) -> JSONResponse:
    return envelope_response(
        ResponseEnvelope(ok=False, message="Server error", error=str(exc)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


@app.middleware("http")
async def add_cors_headers(request, call_next):
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return server_error_response(exc)


async def get_http_client(settings: Settings = Depends(get_settings)):
    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        yield client


async def run_handler(operation: str, build: Callable) -> JSONResponse:
    """
    Build and run one handler, rendering its outcome as a response envelope.
    """
    try:
        handler = build()
        envelope = await handler.run()
    except HandlerError as e:
        logger.info(f"{operation} failed: {e.kind.value} ({e.status_code})")
        return envelope_response(
            ResponseEnvelope(ok=False, message=e.message, details=e.details, error=e.error),
            e.status_code,
        )
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return server_error_response(e)
    return envelope_response(envelope)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    return JSONResponse(content={"status": "ok", "service": "accounts"}, status_code=status.HTTP_200_OK)


@app.options("/delete-my-account")
@app.options("/send-email-otp")
async def preflight():
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@app.api_route("/delete-my-account", methods=HANDLED_METHODS)
async def delete_my_account(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Delete the caller's stored files and auth user."""
    token = extract_bearer_token(authorization)
    return await run_handler("delete-my-account", lambda: AccountEraser.from_settings(settings, token, http))


@app.api_route("/send-email-otp", methods=HANDLED_METHODS)
async def send_email_otp(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
):
    """Create a one-time code for the caller and email it."""
    token = extract_bearer_token(authorization)
    return await run_handler("send-email-otp", lambda: OtpIssuer.from_settings(settings, token, http))


def run():
    uvicorn.run("accounts.main:app", host="0.0.0.0", port=8000)
