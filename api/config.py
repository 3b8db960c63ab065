# api/config.py
# Remote UI control: branding for the player.
from fastapi import FastAPI, Request, Response

from api._common import install_handlers
from relay import settings

app = install_handlers(FastAPI())


@app.api_route("/api/config", methods=["GET", "OPTIONS"])
async def config(req: Request):
    if req.method == "OPTIONS":
        return Response(status_code=200)
    service_config = settings.load_service_config()
    return {"success": True, "data": service_config.config_payload()}
