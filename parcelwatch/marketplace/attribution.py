"""
Batch attribution.

A batched poll returns one flat list of records. Each record has to be
assigned to the session whose credential produced it before anything is
written; a record that cannot be placed with confidence is dropped.
"""

import logging
from collections import defaultdict
from enum import StrEnum
from typing import Callable, Optional

from pydantic import BaseModel

from parcelwatch.models.order import OrderDraft
from parcelwatch.models.session import MarketplaceSession
from parcelwatch.utils.logging import log_fields

logger = logging.getLogger(__name__)


class AttributionRule(StrEnum):
    """Which rule placed a record"""

    ORDINAL = "ordinal"
    PREVIOUS_OWNER = "previous_owner"
    CACHE_LOOKUP = "cache_lookup"
    UNATTRIBUTED = "unattributed"


class Attribution(BaseModel):
    session_id: Optional[str] = None
    rule: AttributionRule


def attribute_record(
    draft: OrderDraft,
    batch: list[MarketplaceSession],
    known_owners: dict[str, str],
    lookup_owner: Callable[[str], str | None],
) -> Attribution:
    """
    Decide which session of the batch owns a record.

    Args:
        draft: Parsed marketplace record
        batch: Sessions in the order their credentials were sent
        known_owners: order id -> session id, snapshot taken for this batch
        lookup_owner: Store lookup of the current owner of an order id

    Returns:
        Attribution; ``session_id`` is None when unattributed
    """
    batch_ids = {session.id for session in batch}

    if draft.ordinal is not None and 1 <= draft.ordinal <= len(batch):
        return Attribution(
            session_id=batch[draft.ordinal - 1].id, rule=AttributionRule.ORDINAL
        )

    owner = known_owners.get(draft.order_id)
    if owner in batch_ids:
        return Attribution(session_id=owner, rule=AttributionRule.PREVIOUS_OWNER)

    owner = lookup_owner(draft.order_id)
    if owner in batch_ids:
        return Attribution(session_id=owner, rule=AttributionRule.CACHE_LOOKUP)

    return Attribution(rule=AttributionRule.UNATTRIBUTED)


def attribute_batch(
    drafts: list[OrderDraft],
    batch: list[MarketplaceSession],
    known_owners: dict[str, str],
    lookup_owner: Callable[[str], str | None],
) -> tuple[dict[str, list[OrderDraft]], list[OrderDraft]]:
    """
    Group a batch's records by owning session.

    Returns:
        (drafts per session id, unattributed drafts)
    """
    grouped: dict[str, list[OrderDraft]] = defaultdict(list)
    dropped: list[OrderDraft] = []

    for draft in drafts:
        attribution = attribute_record(draft, batch, known_owners, lookup_owner)
        if attribution.session_id is None:
            logger.warning(
                "Dropping unattributable marketplace record",
                extra=log_fields(order_id=draft.order_id, ordinal=draft.ordinal),
            )
            dropped.append(draft)
            continue
        grouped[attribution.session_id].append(draft)

    return dict(grouped), dropped
