"""Shared response builders for storefront routers."""

import math

from services.storefront_service.schemas import (
    CompensationFailureResponse,
    CompensationReportResponse,
    PurchaseResponse,
    TransitionResponse,
)
from services.storefront_service.services.order_state_machine import TransitionResult

DEFAULT_PAGE_SIZE = 20


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if total else 0


def transition_response(result: TransitionResult) -> TransitionResponse:
    compensation = None
    if result.compensation is not None:
        report = result.compensation
        compensation = CompensationReportResponse(
            restored_units=report.restored_units,
            complete=report.complete,
            failures=[
                CompensationFailureResponse(
                    product_id=failure.product_id,
                    quantity=failure.quantity,
                    cause=str(failure.cause) if failure.cause else None,
                )
                for failure in report.failures
            ],
        )
    return TransitionResponse(
        purchase=PurchaseResponse.model_validate(result.purchase),
        applied=result.applied,
        from_status=result.from_status,
        to_status=result.to_status,
        missing_fields=result.missing_fields,
        compensation=compensation,
    )
