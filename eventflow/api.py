"""
REST API — サービス操作の HTTP 公開

リクエストを DTO にデコードし、サービスのメソッドを 1 つ呼び、戻り値を JSON で返す。
すべての操作を公開しているわけではない (イベントからしか呼ばれないものもある)。

  PermissionError  → 403
  NotFoundError    → 404
  その他の例外      → 500 (リクエストのデコード失敗も含む)
"""

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .analytics.service import AnalyticsService
from .bootstrap import Services
from .errors import EventFlowError, NotFoundError
from .orders.models import (
    CancelOrderRequest,
    GetOrderRequest,
    PlaceOrderRequest,
    SearchOrdersRequest,
    ShipOrderRequest,
)
from .payments.models import ChargebackRequest, GetTransactionRequest, SearchTransactionsCriteria

logger = logging.getLogger(__name__)

router = APIRouter()


def _services(request: Request) -> Services:
    return request.app.state.services


# ── Orders ───────────────────────────────────────

@router.get("/order")
async def search_orders(request: Request):
    return await _services(request).orders.search_orders(SearchOrdersRequest())


@router.put("/order")
async def place_order(request: Request, req: PlaceOrderRequest):
    return await _services(request).orders.place_order(req)


@router.get("/order/{order_id}")
async def get_order(request: Request, order_id: str):
    return await _services(request).orders.get_order(GetOrderRequest(order_id=order_id))


@router.delete("/order/{order_id}")
async def cancel_order(request: Request, order_id: str):
    return await _services(request).orders.cancel_order(CancelOrderRequest(order_id=order_id))


@router.post("/order/{order_id}/shipping")
async def ship_order(request: Request, order_id: str):
    """倉庫から出荷通知を受けたときに呼ばれる。"""
    return await _services(request).orders.ship_order(ShipOrderRequest(order_id=order_id))


# ── Transactions ─────────────────────────────────

@router.get("/transaction")
async def search_transactions(request: Request):
    return await _services(request).payments.search_transactions(SearchTransactionsCriteria())


@router.get("/transaction/{transaction_id}")
async def get_transaction(request: Request, transaction_id: str):
    return await _services(request).payments.get_transaction(
        GetTransactionRequest(transaction_id=transaction_id)
    )


@router.post("/transaction/{transaction_id}/chargeback")
async def chargeback(request: Request, transaction_id: str):
    """決済代行会社からのチャージバック通知 (webhook)"""
    return await _services(request).payments.chargeback(
        ChargebackRequest(transaction_id=transaction_id)
    )


# ── Analytics ────────────────────────────────────

@router.get("/analytics")
async def analytics_summary(request: Request):
    analytics: AnalyticsService = _services(request).analytics
    return analytics.summary()


@router.get("/health")
async def health():
    return {"status": "ok", "service": "eventflow"}


# ── エラーハンドリング ───────────────────────────

def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"status": status, "message": message})


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PermissionError)
    async def permission_denied(request: Request, exc: PermissionError):
        return _error(403, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.errors())
        return _error(500, f"Invalid request: {exc.errors()}")

    @app.exception_handler(EventFlowError)
    async def service_error(request: Request, exc: EventFlowError):
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, str(exc))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path)
        return _error(500, str(exc))
