"""
Display-order maintenance for carousel and portfolio rows.
"""
import logging
from typing import Dict, List, Sequence

from portfolio_cms.bindings.base import ActionResult, Binding
from portfolio_cms.services.content_store import ContentStore, StoreResult

logger = logging.getLogger(__name__)


def reorder_ids(current: Sequence[str], requested: Sequence[str]) -> List[str]:
    """
    Requested ids first, in the order given; remaining ids keep their
    current relative order after them.
    """
    requested_set = set(requested)
    return list(requested) + [record_id for record_id in current if record_id not in requested_set]


async def write_display_order(
    store: ContentStore,
    collection: str,
    ordered_ids: Sequence[str],
    current_order: Dict[str, int],
) -> StoreResult[int]:
    """
    Give each id its position as display_order, skipping rows already there.
    Stops at the first failed update; earlier updates stay written.
    """
    written = 0
    for position, record_id in enumerate(ordered_ids):
        if current_order.get(record_id) == position:
            continue
        result = await store.update(collection, record_id, {"display_order": position})
        if not result.ok:
            logger.error(
                f"Reorder of {collection} stopped at {record_id} after {written} updates: {result.error}"
            )
            return StoreResult.failure(result.error.message)
        written += 1
    return StoreResult.success(written)


class OrderedBinding(Binding):
    """Binding over rows carrying id and display_order."""

    async def reorder(self, ids: Sequence[str]) -> ActionResult:
        if not ids:
            return self._invalid("At least one id is required")

        current = {row.id: row.display_order for row in self._snapshot}
        unknown = [record_id for record_id in ids if record_id not in current]
        if unknown:
            return self._invalid(f"Unknown ids: {', '.join(unknown)}")

        ordered = reorder_ids([row.id for row in self._snapshot], ids)
        return await self._mutate(
            write_display_order(self.store, self.collections[0], ordered, current),
            "Order updated",
        )
