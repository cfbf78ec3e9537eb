"""Agent commission for negotiated deals.

The commission has two components, both in basis points:

- discount: 100 at or below a 5% discount, 25 at or above 30%, linear between.
  Less discounted deals pay the agent more.
- lockup: 0 at no lockup, rising linearly to 50 at one year, capped there.
  Longer lockups pay the agent more.

The sum is clamped to [25, 150].
"""

MIN_COMMISSION_BPS = 25
MAX_COMMISSION_BPS = 150

DISCOUNT_FLOOR_BPS = 500
DISCOUNT_CEILING_BPS = 3000
DISCOUNT_COMPONENT_MAX = 100
DISCOUNT_COMPONENT_MIN = 25

LOCKUP_YEAR_DAYS = 365
LOCKUP_COMPONENT_MAX = 50


def discount_component(discount_bps: int) -> int:
    if discount_bps <= DISCOUNT_FLOOR_BPS:
        return DISCOUNT_COMPONENT_MAX
    if discount_bps >= DISCOUNT_CEILING_BPS:
        return DISCOUNT_COMPONENT_MIN
    span = DISCOUNT_COMPONENT_MAX - DISCOUNT_COMPONENT_MIN
    width = DISCOUNT_CEILING_BPS - DISCOUNT_FLOOR_BPS
    return DISCOUNT_COMPONENT_MAX - (discount_bps - DISCOUNT_FLOOR_BPS) * span // width


def lockup_component(lockup_days: int) -> int:
    if lockup_days >= LOCKUP_YEAR_DAYS:
        return LOCKUP_COMPONENT_MAX
    return max(0, lockup_days) * LOCKUP_COMPONENT_MAX // LOCKUP_YEAR_DAYS


def calculate_agent_commission(discount_bps: int, lockup_days: int) -> int:
    """Return the agent's commission in basis points for the given deal terms.

    Examples:
        >>> calculate_agent_commission(500, 0)
        100
        >>> calculate_agent_commission(3000, 365)
        75
        >>> calculate_agent_commission(1750, 182)
        87
    """
    total = discount_component(discount_bps) + lockup_component(lockup_days)
    return max(MIN_COMMISSION_BPS, min(MAX_COMMISSION_BPS, total))
