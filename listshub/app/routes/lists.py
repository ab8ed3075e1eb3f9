"""API routes for family lists and their items."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..errors import DOMAIN_ERRORS, to_http_exception
from ..schemas.lists import (
    CreateItemRequest,
    CreateListRequest,
    ListCollectionResponse,
    ListItemCollectionResponse,
    ListItemOut,
    ListOut,
    ShareListRequest,
)
from ..services.lists import get_list_service
from .families import _get_current_user

router = APIRouter(prefix="/api", tags=["lists"])


@router.get("/families/{family_id}/lists", response_model=ListCollectionResponse)
def list_family_lists(family_id: str, *, current_user=Depends(_get_current_user)) -> ListCollectionResponse:
    service = get_list_service()
    try:
        records = service.lists_visible_to(family_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListCollectionResponse(lists=[ListOut.from_record(record) for record in records])


@router.post("/families/{family_id}/lists", response_model=ListOut, status_code=status.HTTP_201_CREATED)
def create_list(
    family_id: str,
    payload: CreateListRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ListOut:
    service = get_list_service()
    try:
        record = service.create_list(
            family_id,
            current_user.id,
            payload.name,
            description=payload.description,
            visibility=payload.visibility,
            tags=payload.tags,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListOut.from_record(record)


@router.get("/lists/{list_id}", response_model=ListOut)
def get_list(list_id: str, *, current_user=Depends(_get_current_user)) -> ListOut:
    service = get_list_service()
    try:
        record = service.get_list(list_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListOut.from_record(record)


@router.delete("/lists/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_list(list_id: str, *, current_user=Depends(_get_current_user)) -> None:
    service = get_list_service()
    try:
        service.delete_list(list_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc


@router.get("/lists/{list_id}/items", response_model=ListItemCollectionResponse)
def list_items(list_id: str, *, current_user=Depends(_get_current_user)) -> ListItemCollectionResponse:
    service = get_list_service()
    try:
        items = service.list_items(list_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListItemCollectionResponse(items=[ListItemOut.from_item(item) for item in items])


@router.post("/lists/{list_id}/items", response_model=ListItemOut, status_code=status.HTTP_201_CREATED)
def add_item(
    list_id: str,
    payload: CreateItemRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ListItemOut:
    service = get_list_service()
    try:
        item = service.add_item(
            list_id,
            current_user.id,
            payload.name,
            notes=payload.notes,
            quantity=payload.quantity,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListItemOut.from_item(item)


@router.post("/lists/{list_id}/items/{item_id}/toggle", response_model=ListItemOut)
def toggle_item(list_id: str, item_id: str, *, current_user=Depends(_get_current_user)) -> ListItemOut:
    service = get_list_service()
    try:
        item = service.toggle_item(list_id, item_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListItemOut.from_item(item)


@router.delete("/lists/{list_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(list_id: str, item_id: str, *, current_user=Depends(_get_current_user)) -> None:
    service = get_list_service()
    try:
        service.delete_item(list_id, item_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc


@router.put("/lists/{list_id}/permissions", response_model=ListOut)
def share_list(
    list_id: str,
    payload: ShareListRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ListOut:
    service = get_list_service()
    try:
        record = service.share_list_with_user(
            list_id,
            current_user.id,
            payload.user_id,
            can_create_items=payload.can_create_items,
            can_toggle_items=payload.can_toggle_items,
            can_delete_items=payload.can_delete_items,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListOut.from_record(record)


@router.delete("/lists/{list_id}/permissions/{user_id}", response_model=ListOut)
def remove_list_access(
    list_id: str,
    user_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> ListOut:
    service = get_list_service()
    try:
        record = service.remove_list_access(list_id, current_user.id, user_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return ListOut.from_record(record)


__all__ = ["router"]
