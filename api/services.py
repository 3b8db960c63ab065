# api/services.py
# Service spinner data: the upstreams a user can pick from.
from fastapi import FastAPI, Request, Response

from api._common import install_handlers
from relay import settings

app = install_handlers(FastAPI())


@app.api_route("/api/services", methods=["GET", "OPTIONS"])
async def services(req: Request):
    if req.method == "OPTIONS":
        return Response(status_code=200)
    service_config = settings.load_service_config()
    return {"success": True, "data": service_config.services_payload()}
