"""Deals API endpoints."""

from fastapi import APIRouter, status

from consignments import ConsignmentError, RecordDealRequest
from deals import DealRecorder

from ..errors import http_error, server_error

# Create router
router = APIRouter(
    prefix="/deals",
    tags=["Deals"]
)

@router.post("/", status_code=status.HTTP_201_CREATED)
async def record_deal(request: RecordDealRequest):
    """Record an executed deal.

    The inventory must already have been reserved through
    ``POST /consignments/{id}/reserve``.
    """
    try:
        deal = await DealRecorder().record_deal(request)
        return deal.model_dump(mode='json')
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.get("/{deal_id}")
async def get_deal(deal_id: str):
    """Get a deal by id."""
    try:
        deal = await DealRecorder().get_deal(deal_id)
        return deal.model_dump(mode='json')
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)
