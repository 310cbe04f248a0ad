"""
HTTP API Server
===============
FastAPI transport for the POS order core.

Routes map one-to-one onto PosService operations. Typed PosErrors are
translated here into status codes and JSON bodies; nothing below this
layer knows about HTTP.

NO BUSINESS LOGIC - Pure request/response plumbing only.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
import uvicorn

from config import get_config, validate_configuration
from errors import (
    AuthorizationError,
    BusinessRuleViolation,
    ConflictError,
    NotFoundError,
    PosError,
    ValidationError,
)
from pos_service import PosService, create_pos_service


logger = logging.getLogger(__name__)


# ============================================================================
# ERROR MAPPING
# ============================================================================

STATUS_BY_FAMILY = (
    (ValidationError, 422),
    (AuthorizationError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
    (BusinessRuleViolation, 409),
)


def status_for_error(error: PosError) -> int:
    for family, status in STATUS_BY_FAMILY:
        if isinstance(error, family):
            return status
    return 400


# ============================================================================
# REQUEST MODELS
# ============================================================================

class AddItemRequest(BaseModel):
    menu_item_id: str
    quantity: int = 1
    notes: Optional[str] = None


class UpdateQuantityRequest(BaseModel):
    quantity: int


class AdminRemoveRequest(BaseModel):
    amount: int
    admin_code: Optional[str] = None
    token: Optional[str] = None


class AdminLoginRequest(BaseModel):
    admin_code: Optional[str] = None


class CloseRequest(BaseModel):
    receipt_kind: str = "thermal"


class MoveRequest(BaseModel):
    new_slot: Union[int, str]


# ============================================================================
# APPLICATION
# ============================================================================

def create_app(service: Optional[PosService] = None, cors_origins=None) -> FastAPI:
    """
    Build the FastAPI app.

    Without an injected service, one is wired from configuration at
    startup.
    """
    app = FastAPI(title="Restaurant POS Order Core")
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event():
        if app.state.service is None:
            validate_configuration()
            app.state.service = create_pos_service(get_config())
        logger.info("POS API server started")

    @app.exception_handler(PosError)
    async def pos_error_handler(request: Request, exc: PosError):
        return JSONResponse(status_code=status_for_error(exc), content=exc.to_dict())

    def svc() -> PosService:
        return app.state.service

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "active_orders": len(svc().store),
            "timestamp": datetime.utcnow().isoformat()
        }

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # ------------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------------

    @app.get("/orders")
    async def list_orders(status: Optional[str] = None):
        return svc().list_active_orders(status)

    @app.get("/orders/status/{status}")
    async def list_orders_by_status(status: str):
        return svc().list_active_orders(status)

    @app.get("/orders/slot/{identifier}")
    async def get_or_create_for_slot(identifier: str):
        return await svc().get_or_create_for_slot(identifier)

    @app.post("/orders/takeout")
    async def new_takeout_order():
        return await svc().new_takeout_order()

    @app.get("/orders/{order_id}")
    async def get_order(order_id: str):
        return svc().get_order(order_id)

    @app.post("/orders/{order_id}/items")
    async def add_item(order_id: str, body: AddItemRequest):
        return await svc().add_item(order_id, body.menu_item_id, body.quantity, body.notes)

    @app.delete("/orders/{order_id}/items/{item_id}")
    async def remove_item(order_id: str, item_id: str):
        return await svc().remove_item(order_id, item_id)

    @app.patch("/orders/{order_id}/items/{item_id}/quantity")
    async def update_quantity(order_id: str, item_id: str, body: UpdateQuantityRequest):
        return await svc().update_quantity(order_id, item_id, body.quantity)

    @app.post("/orders/{order_id}/items/{item_id}/admin-remove")
    async def admin_remove_item(order_id: str, item_id: str, body: AdminRemoveRequest):
        return await svc().admin_remove_item(
            order_id,
            item_id,
            body.amount,
            credential=body.admin_code,
            authorization=body.token
        )

    @app.post("/orders/{order_id}/send")
    async def send_order(order_id: str):
        return await svc().send(order_id)

    @app.post("/orders/{order_id}/close")
    async def close_order(order_id: str, body: Optional[CloseRequest] = None):
        body = body or CloseRequest()
        return await svc().close(order_id, body.receipt_kind)

    @app.post("/orders/{order_id}/move")
    async def move_order(order_id: str, body: MoveRequest):
        return await svc().move(order_id, body.new_slot)

    # ------------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------------

    @app.post("/admin/login")
    async def admin_login(body: AdminLoginRequest) -> Dict[str, Any]:
        authorization = svc().admin_login(body.admin_code)
        return {"success": True, **authorization.to_dict()}

    return app


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def main():
    """Run the API server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    validate_configuration()
    config = get_config()
    logging.getLogger().setLevel(config.server.log_level)

    app = create_app(create_pos_service(config), config.server.cors_origins)

    logger.info(f"Starting server on {config.server.host}:{config.server.port}")

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
