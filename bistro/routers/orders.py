import logging
import math
from datetime import datetime

from fastapi import APIRouter, Body, Depends, Query, Request, status

from bistro.dependencies import get_order_gateway, request_id
from bistro.models.order import OrderStatus, OrderType
from bistro.schemas.common import Envelope, PageEnvelope, Pagination
from bistro.schemas.order import (
    CancelRequest,
    OrderCreate,
    OrderQuery,
    OrderResponse,
    SortField,
    SortOrder,
    StatusUpdate,
)
from bistro.security import require_staff
from bistro.services.order_service import OrderGateway, creation_message

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=Envelope[OrderResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def place_order(
    body: OrderCreate,
    request: Request,
    orders: OrderGateway = Depends(get_order_gateway),
) -> Envelope[OrderResponse]:
    rid = request_id(request)
    logger.info(
        "Received place_order request",
        extra={"request_id": rid, "order_type": body.order_type.value, "item_count": len(body.items)},
    )
    served = await orders.create_order(body, rid)
    return Envelope(
        message=creation_message(served.value, served.degraded),
        data=served.value,
        note=served.note,
    )


@router.get(
    "",
    response_model=PageEnvelope[OrderResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(require_staff)],
)
async def list_orders(
    request: Request,
    status_filter: OrderStatus | None = Query(None, alias="status"),
    order_type: OrderType | None = Query(None, alias="orderType"),
    customer_phone: str | None = Query(None, alias="customerPhone"),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortField = Query(SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    orders: OrderGateway = Depends(get_order_gateway),
) -> PageEnvelope[OrderResponse]:
    query = OrderQuery(
        status=status_filter,
        order_type=order_type,
        customer_phone=customer_phone,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    logger.info("Received list_orders request", extra={"request_id": request_id(request), "page": page})
    served = await orders.list_orders(query)
    result = served.value
    return PageEnvelope(
        data=result.items,
        pagination=Pagination(
            current_page=page,
            total_pages=math.ceil(result.total / limit),
            total_items=result.total,
            items_per_page=limit,
        ),
        note=served.note,
    )


@router.get(
    "/{order_id}",
    response_model=Envelope[OrderResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(require_staff)],
)
async def get_order(
    order_id: str,
    request: Request,
    orders: OrderGateway = Depends(get_order_gateway),
) -> Envelope[OrderResponse]:
    logger.info(
        "Received get_order request",
        extra={"request_id": request_id(request), "order_id": order_id},
    )
    served = await orders.get_order(order_id)
    return Envelope(data=served.value, note=served.note)


@router.patch(
    "/{order_id}/status",
    response_model=Envelope[OrderResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(require_staff)],
)
async def update_order_status(
    order_id: str,
    body: StatusUpdate,
    request: Request,
    orders: OrderGateway = Depends(get_order_gateway),
) -> Envelope[OrderResponse]:
    rid = request_id(request)
    logger.info(
        "Received update_order_status request",
        extra={"request_id": rid, "order_id": order_id, "status": body.status.value},
    )
    served = await orders.update_status(order_id, body.status, body.updated_by, rid)
    return Envelope(message="Order status updated successfully", data=served.value, note=served.note)


@router.patch(
    "/{order_id}/cancel",
    response_model=Envelope[OrderResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(require_staff)],
)
async def cancel_order(
    order_id: str,
    request: Request,
    body: CancelRequest | None = Body(None),
    orders: OrderGateway = Depends(get_order_gateway),
) -> Envelope[OrderResponse]:
    rid = request_id(request)
    updated_by = body.updated_by if body else "staff"
    logger.info(
        "Received cancel_order request",
        extra={"request_id": rid, "order_id": order_id, "updated_by": updated_by},
    )
    served = await orders.cancel_order(order_id, updated_by, rid)
    return Envelope(message="Order cancelled successfully", data=served.value, note=served.note)
