"""Identity allocation for in-memory record stores."""


class IdentityAllocator:
    """Issue unique, increasing integer identities.

    Each store owns its own allocator, so independent stores never share a
    sequence. Identities that enter a store from outside (records restored
    from storage) must be passed to ``observe`` so that later allocations
    never collide with them.
    """

    def __init__(self, start: int = 1):
        self._next = start

    def next(self) -> int:
        """Return a fresh identity and advance the high-water mark."""
        issued = self._next
        self._next += 1
        return issued

    def observe(self, record_id: int) -> None:
        """Advance the high-water mark past an externally supplied identity."""
        self._next = max(self._next, record_id + 1)

    def peek(self) -> int:
        """Return the identity ``next`` would issue, without consuming it."""
        return self._next
