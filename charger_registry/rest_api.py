import logging
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from charger_registry.config import LOG_LEVEL, REGISTRY_HOST, REGISTRY_PORT
from charger_registry.device_store import DeviceRegistry
from charger_registry.exceptions import AnchorError, ValidationError
from charger_registry.models import Device, ErrorMessage

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorMessage},
    500: {"model": ErrorMessage},
}


def get_registry(request: Request) -> DeviceRegistry:
    return request.app.state.registry


# ---------------- ERROR MAPPING ----------------
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=getattr(exc, "headers", None))


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "Invalid device data"})


async def _anchor_error(request: Request, exc: AnchorError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"message": "Failed to store device on chain"})


# ---------------- ROUTES ----------------
router = APIRouter()


@router.get("/devices", response_model=List[Device])
async def list_devices(registry: DeviceRegistry = Depends(get_registry)) -> List[Device]:
    return registry.list_devices()


@router.post("/devices", status_code=201, response_model=Device, responses=ERROR_RESPONSES)
async def create_device(request: Request, registry: DeviceRegistry = Depends(get_registry)) -> Device:
    try:
        body = await request.json()
    except ValueError as e:
        logger.warning(f"Malformed request body on POST /devices: {e}")
        raise HTTPException(status_code=400, detail="Invalid request data")

    # ValidationError / AnchorError are mapped by the exception handlers
    return await registry.create(body)


# ---------------- APP SETUP ----------------
def create_app(registry: Optional[DeviceRegistry] = None) -> FastAPI:
    app = FastAPI(title="Charger Registry")
    app.state.registry = registry if registry is not None else DeviceRegistry()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(AnchorError, _anchor_error)

    app.include_router(router)
    return app


app = create_app()


def main():
    logging.basicConfig(level=LOG_LEVEL)
    uvicorn.run(app, host=REGISTRY_HOST, port=REGISTRY_PORT)


if __name__ == "__main__":
    main()
