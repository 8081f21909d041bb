"""
Effective permission chain construction.
"""

from typing import Callable, Dict, Iterable, List, Optional

from shared.logging import get_logger
from .models import Grant


DuplicateResolver = Callable[[Grant, Grant], Grant]


def resolve_duplicate_grant(recorded: Grant, candidate: Grant) -> Grant:
    """Pick which of two grants for the same permission stays in the chain.

    A conditioned grant replaces an unconditioned one even when it is seen
    later. When both are conditioned the recorded (first seen) grant wins and
    the candidate is dropped; condition sets are never merged.
    """
    if not recorded.is_conditioned and candidate.is_conditioned:
        return candidate
    return recorded


class ChainBuilder:
    """Combines user and group grants into one deduplicated chain."""

    def __init__(self, resolve: Optional[DuplicateResolver] = None):
        self.logger = get_logger("permissions.chain_builder")
        self.resolve = resolve or resolve_duplicate_grant

    def build(self, user_grants: Iterable[Grant], group_grants: Iterable[Grant] = ()) -> List[Grant]:
        """Build the effective chain: user grants first, then group grants, first-seen order."""
        chain: Dict[str, Grant] = {}

        for grant in [*user_grants, *group_grants]:
            recorded = chain.get(grant.permission_id)
            if recorded is None:
                chain[grant.permission_id] = grant
                continue

            kept = self.resolve(recorded, grant)
            if kept is not recorded:
                # Replacing a value keeps the key's original position
                chain[grant.permission_id] = kept
            elif grant.is_conditioned and recorded.is_conditioned:
                self.logger.debug(
                    "Conditioned duplicate grant discarded",
                    permission=grant.permission_id,
                    granted_via=grant.granted_via.value,
                    group_id=grant.group_id
                )

        return list(chain.values())


def build_effective_chain(user_grants: Iterable[Grant], group_grants: Iterable[Grant] = ()) -> List[Grant]:
    """Build the effective chain with the default duplicate resolution."""
    return ChainBuilder().build(user_grants, group_grants)
