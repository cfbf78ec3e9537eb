"""Consignment and deal records, and the validated request models for each operation."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints, model_validator
from pydantic import ValidationError as PydanticValidationError

from .chains import Chain, detect_family, is_valid_address
from .exceptions import ValidationError

# uint256 max is 78 digits
MAX_AMOUNT_DIGITS = 78


def _amount_to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


AmountStr = Annotated[
    str,
    StringConstraints(pattern=r'^\d+$', max_length=MAX_AMOUNT_DIGITS),
    BeforeValidator(_amount_to_str),
    AfterValidator(lambda v: str(int(v))),
]
Bps = Annotated[int, Field(ge=0, le=10000)]
Days = Annotated[int, Field(ge=0)]
Seconds = Annotated[int, Field(ge=0)]


class ConsignmentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    DEPLETED = "depleted"
    WITHDRAWN = "withdrawn"


class DealStatus(str, Enum):
    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class Consignment(BaseModel):
    """A seller's listing of a quantity of one token."""
    id: str
    token_id: str
    chain: Chain
    consigner_address: str
    consigner_entity_id: str
    total_amount: AmountStr
    remaining_amount: AmountStr
    is_negotiable: bool
    fixed_discount_bps: Optional[Bps] = None
    fixed_lockup_days: Optional[Days] = None
    min_discount_bps: Bps
    max_discount_bps: Bps
    min_lockup_days: Days
    max_lockup_days: Days
    min_deal_amount: AmountStr
    max_deal_amount: AmountStr
    is_fractionalized: bool = False
    is_private: bool = False
    allowed_buyers: Optional[List[str]] = None
    max_price_volatility_bps: Bps
    max_time_to_execute_seconds: Seconds
    status: ConsignmentStatus = ConsignmentStatus.ACTIVE
    contract_consignment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    last_deal_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return int(self.total_amount)

    @property
    def remaining(self) -> int:
        return int(self.remaining_amount)

    @property
    def min_deal(self) -> int:
        return int(self.min_deal_amount)

    @property
    def max_deal(self) -> int:
        return int(self.max_deal_amount)

    @property
    def has_deals(self) -> bool:
        """True once any reservation has consumed inventory."""
        return self.remaining != self.total


class Deal(BaseModel):
    """Audit record of one executed sale against a consignment."""
    id: str
    consignment_id: str
    quote_id: str
    token_id: str
    buyer_address: str
    amount: AmountStr
    discount_bps: Bps
    lockup_days: Days
    executed_at: datetime
    offer_id: Optional[str] = None
    status: DealStatus = DealStatus.EXECUTED


class ConsignmentDisplay(BaseModel):
    """Buyer-facing projection of a consignment.

    Only the guaranteed end of a negotiable range is shown: the lowest
    discount and the longest lockup. The negotiable ceiling is not part of
    this model at all.
    """
    id: str
    token_id: str
    chain: Chain
    consigner_address: str
    consigner_entity_id: str
    total_amount: str
    remaining_amount: str
    is_negotiable: bool
    is_fractionalized: bool
    is_private: bool
    max_price_volatility_bps: int
    max_time_to_execute_seconds: int
    status: ConsignmentStatus
    contract_consignment_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    last_deal_at: Optional[datetime] = None
    display_discount_bps: int
    display_lockup_days: int
    terms_type: Literal["negotiable", "fixed"]
    fixed_discount_bps: Optional[int] = None
    fixed_lockup_days: Optional[int] = None


class CreateConsignmentRequest(BaseModel):
    """Input for creating a consignment. Unset optional terms take desk defaults."""
    model_config = ConfigDict(extra='forbid')

    token_id: str = Field(..., min_length=1)
    consigner_address: str
    amount: AmountStr
    is_negotiable: bool
    fixed_discount_bps: Optional[Bps] = None
    fixed_lockup_days: Optional[Days] = None
    min_discount_bps: Optional[Bps] = None
    max_discount_bps: Optional[Bps] = None
    min_lockup_days: Optional[Days] = None
    max_lockup_days: Optional[Days] = None
    min_deal_amount: Optional[AmountStr] = None
    max_deal_amount: Optional[AmountStr] = None
    is_fractionalized: bool = False
    is_private: bool = False
    allowed_buyers: Optional[List[str]] = None
    max_price_volatility_bps: Optional[Bps] = None
    max_time_to_execute_seconds: Optional[Seconds] = None
    chain: Chain
    contract_consignment_id: Optional[str] = None

    @model_validator(mode='after')
    def _check_chain_fields(self) -> 'CreateConsignmentRequest':
        if not is_valid_address(self.consigner_address.strip(), self.chain):
            raise ValueError(f"Invalid {self.chain.value} address: {self.consigner_address}")
        for buyer in self.allowed_buyers or []:
            if not is_valid_address(buyer.strip(), self.chain):
                raise ValueError(f"Invalid {self.chain.value} address in allowed_buyers: {buyer}")
        if self.chain is Chain.SOLANA and not self.contract_consignment_id:
            raise ValueError("Solana consignments require contract_consignment_id")
        return self


class UpdateConsignmentRequest(BaseModel):
    """Fields a consigner may change after creation."""
    model_config = ConfigDict(extra='forbid')

    total_amount: Optional[AmountStr] = None
    min_deal_amount: Optional[AmountStr] = None
    max_deal_amount: Optional[AmountStr] = None
    is_fractionalized: Optional[bool] = None
    is_negotiable: Optional[bool] = None
    fixed_discount_bps: Optional[Bps] = None
    fixed_lockup_days: Optional[Days] = None
    min_discount_bps: Optional[Bps] = None
    max_discount_bps: Optional[Bps] = None
    min_lockup_days: Optional[Days] = None
    max_lockup_days: Optional[Days] = None
    is_private: Optional[bool] = None
    allowed_buyers: Optional[List[str]] = None
    max_price_volatility_bps: Optional[Bps] = None
    max_time_to_execute_seconds: Optional[Seconds] = None


class RecordDealRequest(BaseModel):
    """Input for recording an executed deal."""
    model_config = ConfigDict(extra='forbid')

    consignment_id: str = Field(..., min_length=1)
    quote_id: str = Field(..., min_length=1)
    token_id: str = Field(..., min_length=1)
    buyer_address: str
    amount: AmountStr
    discount_bps: Bps
    lockup_days: Days
    offer_id: Optional[str] = None
    chain: Optional[Chain] = None

    @model_validator(mode='after')
    def _check_buyer(self) -> 'RecordDealRequest':
        buyer = self.buyer_address.strip()
        valid = (
            is_valid_address(buyer, self.chain) if self.chain is not None
            else detect_family(buyer) is not None
        )
        if not valid:
            raise ValueError(f"Invalid buyer address: {self.buyer_address}")
        return self


RequestT = TypeVar('RequestT', bound=BaseModel)


def parse_request(model: Type[RequestT], data: Union[RequestT, Dict[str, Any]]) -> RequestT:
    """Validate operation input, raising the engine's ValidationError on failure."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        problems = '; '.join(
            f"{'.'.join(str(part) for part in err['loc']) or 'request'}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {problems}") from e
