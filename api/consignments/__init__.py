"""Consignments API endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from consignments import (
    Chain,
    Consignment,
    ConsignmentError,
    ConsignmentManager,
    CreateConsignmentRequest,
    UpdateConsignmentRequest,
    is_consignment_owner,
    is_visible_to,
    sanitize_for_buyer,
)
from deals import DealRecorder

from ..caller import get_caller_address
from ..errors import forbidden, http_error, server_error

# Create router
router = APIRouter(
    prefix="/consignments",
    tags=["Consignments"]
)

class AmountRequest(BaseModel):
    """Request model for reserving or releasing inventory."""
    amount: str = Field(..., pattern=r'^\d+$')

class MatchRequest(BaseModel):
    """Request model for finding a consignment that can fund a quote."""
    token_id: str
    amount: str = Field(..., pattern=r'^\d+$')
    discount_bps: int = Field(..., ge=0, le=10000)
    lockup_days: int = Field(..., ge=0)

def present(consignment: Consignment, caller_address: Optional[str]) -> Dict[str, Any]:
    """Full record for the consigner, buyer-safe projection for everyone else."""
    if is_consignment_owner(consignment, caller_address):
        return consignment.model_dump(mode='json')
    return sanitize_for_buyer(consignment).model_dump(mode='json')

async def _owned_consignment(
    manager: ConsignmentManager,
    consignment_id: str,
    caller_address: Optional[str]
) -> Consignment:
    consignment = await manager.get_consignment(consignment_id)
    if not is_consignment_owner(consignment, caller_address):
        raise forbidden()
    return consignment

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_consignment(request: CreateConsignmentRequest):
    """Create a new consignment."""
    try:
        consignment = await ConsignmentManager().create_consignment(request)
        return consignment.model_dump(mode='json')
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.get("/")
async def list_consignments(
    token_id: Optional[str] = Query(None),
    chain: Optional[Chain] = Query(None),
    is_negotiable: Optional[bool] = Query(None),
    consigner_address: Optional[str] = Query(None),
    min_amount: Optional[str] = Query(None, pattern=r'^\d+$'),
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """List consignments.

    With ``consigner_address`` every consignment of that consigner is
    returned. Otherwise only active ones, filtered by token, chain and
    pricing mode. Private consignments are only listed for the consigner
    and allowed buyers.
    """
    try:
        manager = ConsignmentManager()
        if consigner_address:
            consignments = await manager.get_consigner_consignments(consigner_address, chain)
        elif token_id and chain is None and is_negotiable is None:
            consignments = await manager.get_consignments_by_token(
                token_id,
                include_private=caller_address is not None,
                requester_address=caller_address,
                min_amount=min_amount
            )
        else:
            consignments = await manager.get_all_consignments(
                chain=chain,
                token_id=token_id,
                is_negotiable=is_negotiable
            )
            if min_amount is not None:
                consignments = [c for c in consignments if c.remaining >= int(min_amount)]

        return {
            "consignments": [
                present(c, caller_address) for c in consignments
                if is_visible_to(c, caller_address)
            ]
        }
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.get("/commission")
async def get_commission(
    discount_bps: int = Query(..., ge=0, le=10000),
    lockup_days: int = Query(..., ge=0)
):
    """Get the agent commission for a set of deal terms."""
    return {
        "discount_bps": discount_bps,
        "lockup_days": lockup_days,
        "commission_bps": ConsignmentManager.calculate_agent_commission(discount_bps, lockup_days)
    }

@router.post("/match")
async def match_consignment(
    request: MatchRequest,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Find the first consignment that can fund the requested terms."""
    try:
        consignment = await ConsignmentManager().find_consignment_for_quote(
            request.token_id,
            request.amount,
            request.discount_bps,
            request.lockup_days,
            requester_address=caller_address
        )
        if consignment is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No consignment for {request.token_id} can fund these terms"
            )
        return {
            "consignment": present(consignment, caller_address),
            "commission_bps": ConsignmentManager.calculate_agent_commission(
                request.discount_bps, request.lockup_days
            )
        }
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.get("/{consignment_id}")
async def get_consignment(
    consignment_id: str,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Get a consignment. Non-owners receive the buyer-safe view."""
    try:
        consignment = await ConsignmentManager().get_consignment(consignment_id)
        if not is_visible_to(consignment, caller_address):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Consignment {consignment_id} not found"
            )
        return present(consignment, caller_address)
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.put("/{consignment_id}")
async def update_consignment(
    consignment_id: str,
    request: UpdateConsignmentRequest,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Update a consignment's terms (consigner only)."""
    try:
        manager = ConsignmentManager()
        await _owned_consignment(manager, consignment_id, caller_address)
        consignment = await manager.update_consignment(consignment_id, request)
        return consignment.model_dump(mode='json')
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.delete("/{consignment_id}")
async def withdraw_consignment(
    consignment_id: str,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Withdraw a consignment (consigner only). Withdrawal is final."""
    try:
        manager = ConsignmentManager()
        await _owned_consignment(manager, consignment_id, caller_address)
        consignment = await manager.withdraw_consignment(consignment_id)
        return consignment.model_dump(mode='json')
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.post("/{consignment_id}/pause")
async def pause_consignment(
    consignment_id: str,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Pause a consignment (consigner only)."""
    try:
        manager = ConsignmentManager()
        await _owned_consignment(manager, consignment_id, caller_address)
        consignment = await manager.pause_consignment(consignment_id)
        return consignment.model_dump(mode='json')
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.post("/{consignment_id}/resume")
async def resume_consignment(
    consignment_id: str,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Resume a paused consignment (consigner only)."""
    try:
        manager = ConsignmentManager()
        await _owned_consignment(manager, consignment_id, caller_address)
        consignment = await manager.resume_consignment(consignment_id)
        return consignment.model_dump(mode='json')
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.post("/{consignment_id}/reserve")
async def reserve_amount(consignment_id: str, request: AmountRequest):
    """Reserve inventory for a deal being executed.

    Returns 409 when the consignment is busy or can't cover the amount; the
    caller may retry.
    """
    try:
        consignment = await ConsignmentManager().reserve_amount(consignment_id, request.amount)
        return {
            "consignment_id": consignment.id,
            "remaining_amount": consignment.remaining_amount,
            "status": consignment.status.value
        }
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.post("/{consignment_id}/release")
async def release_reservation(consignment_id: str, request: AmountRequest):
    """Return reserved inventory after a failed or cancelled deal."""
    try:
        consignment = await ConsignmentManager().release_reservation(consignment_id, request.amount)
        return {
            "consignment_id": consignment.id,
            "remaining_amount": consignment.remaining_amount,
            "status": consignment.status.value
        }
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)

@router.get("/{consignment_id}/deals")
async def get_consignment_deals(
    consignment_id: str,
    caller_address: Optional[str] = Depends(get_caller_address)
):
    """Get a consignment's deal history (consigner only)."""
    try:
        await _owned_consignment(ConsignmentManager(), consignment_id, caller_address)
        deals = await DealRecorder().get_deals_by_consignment(consignment_id)
        return {"deals": [deal.model_dump(mode='json') for deal in deals]}
    except HTTPException:
        raise
    except ConsignmentError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e)
