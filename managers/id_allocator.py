"""Identifier allocation from the finite punk pool"""

import logging
import random
from typing import AbstractSet, Iterable, List, Optional

logger = logging.getLogger("X1Punks")


def allocate(assigned: AbstractSet[int], total_supply: int, rng: Optional[random.Random] = None) -> Optional[int]:
    """Pick an unassigned id in [0, total_supply) uniformly at random.

    Stateless O(N) scan over the complement of ``assigned``. Returns None when
    every id is assigned (the collection is sold out), which callers treat as
    a business outcome rather than an error.
    """
    rng = rng or random
    available = [i for i in range(total_supply) if i not in assigned]
    if not available:
        return None
    return rng.choice(available)


class IdentifierPool:
    """O(1) allocator over the ids not yet assigned.

    Keeps the free ids in an array plus a position index; allocation swaps the
    randomly chosen slot with the last slot and pops it.
    """

    def __init__(self, total_supply: int, assigned: Iterable[int] = (), rng: Optional[random.Random] = None):
        self.total_supply = total_supply
        self._rng = rng or random.Random()
        taken = set(assigned)
        self._free: List[int] = [i for i in range(total_supply) if i not in taken]
        self._position = {punk_id: index for index, punk_id in enumerate(self._free)}
        logger.debug(f"IdentifierPool ready: {len(self._free)}/{total_supply} available")

    @property
    def available(self) -> int:
        return len(self._free)

    def __contains__(self, punk_id: int) -> bool:
        return punk_id in self._position

    def _remove_at(self, index: int) -> int:
        punk_id = self._free[index]
        last = self._free.pop()
        if index < len(self._free):
            self._free[index] = last
            self._position[last] = index
        del self._position[punk_id]
        return punk_id

    def allocate(self) -> Optional[int]:
        """Remove and return a random free id, or None when exhausted"""
        if not self._free:
            return None
        return self._remove_at(self._rng.randrange(len(self._free)))

    def claim(self, punk_id: int) -> bool:
        """Remove a specific id; False if it was not free"""
        index = self._position.get(punk_id)
        if index is None:
            return False
        self._remove_at(index)
        return True

    def release(self, punk_id: int):
        """Return an id to the pool"""
        if not 0 <= punk_id < self.total_supply:
            raise ValueError(f"Punk id {punk_id} outside [0, {self.total_supply})")
        if punk_id in self._position:
            return
        self._position[punk_id] = len(self._free)
        self._free.append(punk_id)
