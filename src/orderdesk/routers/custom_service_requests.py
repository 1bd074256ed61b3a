from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from orderdesk.core.email import custom_service_notification
from orderdesk.core.notifier import NotificationError, Notifier
from orderdesk.models.requests import (
    CreateCustomServiceRequest,
    CustomServiceRequestResponse,
)
from orderdesk.models.schema import CustomServiceRequest
from orderdesk.shared import Logger, load_config
from orderdesk.shared.db import engine
from orderdesk.shared.dependencies import get_notifier
from orderdesk.shared.http import server_error_handler, success_response

logger = Logger(__name__).get_logger()

router = APIRouter(prefix="/api/custom-service-requests", tags=["custom service requests"])

config = load_config()


@router.post("", status_code=201)
async def create_custom_service_request(
    data: CreateCustomServiceRequest,
    notifier: Annotated[Notifier, Depends(get_notifier)],
):
    request = CustomServiceRequest(name=data.name, email=str(data.email), service=data.service)

    with server_error_handler("Failed to save request"):
        with Session(engine) as session:
            session.add(request)
            session.commit()
            session.refresh(request)

    logger.info("Custom service request %s created", request.id)

    try:
        task = custom_service_notification(
            request.id, request.name, request.email, request.service,
            config.general, config.email,
        )
    except NotificationError as e:
        logger.error("Skipping notification for request %s: %s", request.id, e)
    else:
        await notifier.notify(task)

    return success_response(
        201,
        "Request submitted successfully",
        CustomServiceRequestResponse.model_validate(request),
    )


@router.delete("/{request_id}")
async def delete_custom_service_request(request_id: int):
    with Session(engine) as session:
        request = session.exec(
            select(CustomServiceRequest).where(
                CustomServiceRequest.id == request_id,
                CustomServiceRequest.deleted_at.is_(None),
            )
        ).first()
        if not request:
            raise HTTPException(status_code=404, detail="Request not found")

        with server_error_handler("Failed to delete request"):
            request.soft_delete()
            session.add(request)
            session.commit()

    logger.info("Custom service request %s deleted", request_id)
    return success_response(200, "Request deleted successfully")
