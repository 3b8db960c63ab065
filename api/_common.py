# api/_common.py
# Shared wiring for the serverless functions in this directory. The leading
# underscore keeps Vercel from deploying it as a function of its own.
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from relay.cors import apply_cors
from relay.errors import MethodNotAllowed, RelayError


def install_handlers(app: FastAPI) -> FastAPI:
    """CORS on every response, JSON ``{error}`` bodies for every failure."""

    @app.middleware("http")
    async def add_cors(req: Request, call_next):
        response = await call_next(req)
        apply_cors(response.headers)
        return response

    @app.exception_handler(RelayError)
    async def relay_error(req: Request, exc: RelayError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(req: Request, exc: StarletteHTTPException):
        if exc.status_code == MethodNotAllowed.status_code:
            return await relay_error(req, MethodNotAllowed("Method not allowed"))
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    return app
