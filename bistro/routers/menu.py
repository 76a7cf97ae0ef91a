import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from bistro.dependencies import get_menu_gateway, request_id
from bistro.models.menu_item import MenuCategory
from bistro.schemas.common import Envelope
from bistro.schemas.menu_item import MenuItemResponse
from bistro.services.menu_service import MenuGateway

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=Envelope[list[MenuItemResponse]], response_model_exclude_none=True)
async def list_menu_items(
    request: Request,
    category: MenuCategory | None = None,
    available: bool | None = Query(None),
    menu: MenuGateway = Depends(get_menu_gateway),
) -> Envelope[list[MenuItemResponse]]:
    logger.info(
        "Received list_menu_items request",
        extra={"request_id": request_id(request), "category": category.value if category else None},
    )
    served = await menu.list_items(category, available)
    return Envelope(data=served.value, note=served.note)


@router.get("/{menu_item_id}", response_model=Envelope[MenuItemResponse], response_model_exclude_none=True)
async def get_menu_item(
    menu_item_id: str,
    request: Request,
    menu: MenuGateway = Depends(get_menu_gateway),
) -> Envelope[MenuItemResponse]:
    logger.info(
        "Received get_menu_item request",
        extra={"request_id": request_id(request), "menu_item_id": menu_item_id},
    )
    served = await menu.get_item(menu_item_id)
    if served.value is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    return Envelope(data=served.value, note=served.note)
