from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlmodel import Session, select

from orderdesk.core.email import order_notification
from orderdesk.core.notifier import NotificationError, Notifier
from orderdesk.core.storage import ObjectStorage, StorageError
from orderdesk.core.uploads import UploadRejected, read_upload, save_upload
from orderdesk.core.vault import CredentialVault, VaultError
from orderdesk.models.requests import CreateOrderRequest, OrderListItem, OrderResponse
from orderdesk.models.schema import Order
from orderdesk.shared import Logger, load_config
from orderdesk.shared.db import engine
from orderdesk.shared.dependencies import get_notifier, get_storage, get_vault_dependency
from orderdesk.shared.http import (
    server_error_handler,
    success_response,
    validation_error_response,
)

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/api/orders", tags=["orders"])

config = load_config()


def _get_active_order(session: Session, order_id: int) -> Order:
    order = session.exec(
        select(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
    ).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _discard_upload(storage: ObjectStorage, key: str) -> None:
    try:
        storage.delete(key)
    except StorageError as e:
        logger.error("Failed to roll back upload %s: %s", key, e)


@router.post("", status_code=201)
async def create_order(
    storage: Annotated[ObjectStorage, Depends(get_storage)],
    vault: Annotated[CredentialVault, Depends(get_vault_dependency)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    file: Annotated[UploadFile | None, File()] = None,
    username: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
    service: Annotated[str, Form()] = "",
):
    """
    Create an order from a multipart form.

    Form fields:
    - username / password: customer credentials, stored encrypted
    - service: requested service type (3-100 characters)
    - file: payment proof (.jpg, .jpeg, .png or .pdf)
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="Payment proof file is required")
    # Credentials are kept verbatim, only service gets trimmed
    for field, value in (
        ("username", username),
        ("password", password),
        ("service", service.strip()),
    ):
        if value == "":
            raise HTTPException(status_code=400, detail=f"{field.capitalize()} is required")

    try:
        data = CreateOrderRequest(username=username, password=password, service=service)
    except ValidationError as e:
        errors = {str(err["loc"][-1]): err["msg"] for err in e.errors()}
        return validation_error_response("Invalid order", errors)

    try:
        content = await read_upload(file, config.uploads)
        key, url = save_upload(
            storage,
            file.filename,
            content,
            file.content_type,
            config.uploads,
            config.storage.prefix,
        )
    except UploadRejected as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        logger.error("Failed to store payment proof: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save file") from e

    try:
        order = Order(
            username=vault.encrypt(data.username),
            password=vault.encrypt(data.password),
            service=data.service,
            payment_proof=url,
        )
        with Session(engine) as session:
            session.add(order)
            session.commit()
            session.refresh(order)
    except VaultError as e:
        _discard_upload(storage, key)
        logger.error("Failed to encrypt order credentials: %s", e)
        raise HTTPException(status_code=500, detail="Failed to encrypt credentials") from e
    except Exception as e:
        _discard_upload(storage, key)
        logger.error("Failed to create order: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create order") from e

    logger.info("Order %s created", order.id)

    try:
        task = order_notification(
            order.id, data.username, order.service, key, config.general, config.email
        )
    except NotificationError as e:
        logger.error("Skipping notification for order %s: %s", order.id, e)
    else:
        await notifier.notify(task)

    response = OrderResponse(
        id=order.id,
        username=data.username,
        password=data.password,
        service=order.service,
        payment_proof=order.payment_proof,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
    return success_response(201, "Order created successfully", response)


@router.get("")
async def list_orders():
    with server_error_handler("Failed to fetch orders"):
        with Session(engine) as session:
            orders = session.exec(
                select(Order).where(Order.deleted_at.is_(None)).order_by(Order.id)
            ).all()

    items = [OrderListItem.model_validate(order) for order in orders]
    return success_response(200, "Orders fetched successfully", items)


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    vault: Annotated[CredentialVault, Depends(get_vault_dependency)],
):
    with Session(engine) as session:
        order = _get_active_order(session, order_id)

    try:
        username = vault.decrypt(order.username)
        password = vault.decrypt(order.password)
    except VaultError as e:
        logger.error("Failed to decrypt credentials of order %s: %s", order_id, e)
        raise HTTPException(status_code=500, detail="Failed to decrypt credentials") from e

    response = OrderResponse(
        id=order.id,
        username=username,
        password=password,
        service=order.service,
        payment_proof=order.payment_proof,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
    return success_response(200, "Order found", response)


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    storage: Annotated[ObjectStorage, Depends(get_storage)],
):
    with Session(engine) as session:
        order = _get_active_order(session, order_id)

        if order.payment_proof:
            try:
                storage.delete(storage.key_from_url(order.payment_proof))
            except StorageError as e:
                logger.warning("Could not delete payment proof of order %s: %s", order_id, e)

        with server_error_handler("Failed to delete order"):
            order.soft_delete()
            session.add(order)
            session.commit()

    logger.info("Order %s deleted", order_id)
    return success_response(200, "Order deleted successfully")
