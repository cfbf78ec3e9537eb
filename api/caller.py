"""Caller identity for API requests.

Wallet signature verification happens upstream; the API only reads the
address the caller claims.
"""

from typing import Optional

from fastapi import Header, Query


async def get_caller_address(
    caller_address: Optional[str] = Query(None, alias="callerAddress"),
    x_caller_address: Optional[str] = Header(None)
) -> Optional[str]:
    """Return the caller's address from the query string or the x-caller-address header."""
    address = caller_address or x_caller_address
    return address.strip() if address else None
