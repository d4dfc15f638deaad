"""User identity cache owned by a message source.

Unbounded and append-only: an entry is written once per user id and never
evicted. The backing mapping is injectable so tests (or a caller wanting
eviction, e.g. a ``cachetools.LRUCache``) can supply their own.
"""

from collections.abc import MutableMapping

from task_extractor.models.slack import UserIdentity


class UserCache:
    """Maps Slack user ids to resolved identities."""

    def __init__(self, storage: MutableMapping[str, UserIdentity] | None = None):
        self._storage: MutableMapping[str, UserIdentity] = {} if storage is None else storage

    def get(self, user_id: str) -> UserIdentity | None:
        return self._storage.get(user_id)

    def add(self, identity: UserIdentity, user_id: str | None = None) -> None:
        """Cache ``identity`` under ``user_id`` (defaults to ``identity.id``).

        Callers pass the id they looked up so a later lookup of that same id
        hits, even when the directory answered with a different canonical id.
        """
        # Same id always resolves to the same identity, so concurrent
        # writers racing on a key are harmless.
        self._storage[user_id or identity.id] = identity

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._storage

    def __len__(self) -> int:
        return len(self._storage)

    def clear(self) -> None:
        """Drop every cached identity. Used for testing."""
        self._storage.clear()
