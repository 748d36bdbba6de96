"""
FEFO policy — isolated, testable, reusable.

First-Expired-First-Out: always consume the soonest-to-expire stock first.
Lots without an expiry date sort after every dated lot; ties (and undated
lots) fall back to the oldest production date, then to creation order.

Examples:
    - Lot A expires in 5 days, lot B in 30 days: A is consumed first
    - Lot C has no expiry: consumed only after A and B
    - Two undated lots: the one produced earlier goes first
"""

from datetime import date

from django.db.models import F

# Queryset-level ordering, shared by selection and listings
FEFO_ORDERING = (
    F('expiry_date').asc(nulls_last=True),
    F('production_date').asc(),
    F('created_at').asc(),
    F('pk').asc(),
)


def order_fefo(lots):
    """Order a Lot queryset by the FEFO policy."""
    return lots.order_by(*FEFO_ORDERING)


def fefo_key(lot) -> tuple:
    """
    Sort key for in-memory lists — same ordering as FEFO_ORDERING.

    Args:
        lot: Anything with .expiry_date, .production_date, .created_at, .pk
    """
    expiry = lot.expiry_date
    return (
        expiry is None,
        expiry or date.max,
        lot.production_date or date.max,
        lot.created_at,
        lot.pk,
    )


def sort_fefo(lots) -> list:
    return sorted(lots, key=fefo_key)


def plan_allocation(lots, required: int) -> list[tuple]:
    """
    Walk FEFO-ordered lots and pick quantities until required is covered.

    Takes min(lot.current_quantity, remaining) from each lot. The caller
    must have checked that the lots hold at least `required` in total;
    otherwise the plan covers only what exists and never more.

    Returns:
        List of (lot, quantity) picks, in consumption order
    """
    picks = []
    remaining = required

    for lot in lots:
        if remaining <= 0:
            break
        take = min(lot.current_quantity, remaining)
        if take <= 0:
            continue
        picks.append((lot, take))
        remaining -= take

    return picks
