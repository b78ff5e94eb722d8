"""Per-project subscriber sets ("rooms") for connected clients."""

from __future__ import annotations

import weakref
from typing import Protocol

from pal_runner.models.events import RunEvent


class Subscriber(Protocol):
    """A client connection that can receive ``run`` events.

    ``send`` must not raise; a connection that has gone away logs and
    drops the event.
    """

    async def send(self, event: RunEvent) -> None: ...


class SubscriberRegistry:
    """Maps projects to their subscribers and subscribers to their projects.

    Both directions are kept in step so a disconnecting client can be
    removed from every set it belongs to.  A forgotten subscriber can never
    join again, so commands still in flight for a closed connection do not
    re-register it.
    """

    def __init__(self) -> None:
        self._members: dict[str, set[Subscriber]] = {}
        self._joined: dict[Subscriber, set[str]] = {}
        self._gone: weakref.WeakSet[Subscriber] = weakref.WeakSet()

    def join(self, subscriber: Subscriber, project_id: str) -> None:
        self._members.setdefault(project_id, set()).add(subscriber)
        self._joined.setdefault(subscriber, set()).add(project_id)

    def leave(self, subscriber: Subscriber, project_id: str) -> None:
        members = self._members.get(project_id)
        if members is not None:
            members.discard(subscriber)
            if not members:
                del self._members[project_id]
        joined = self._joined.get(subscriber)
        if joined is not None:
            joined.discard(project_id)
            if not joined:
                del self._joined[subscriber]

    def leave_all(self, subscriber: Subscriber) -> set[str]:
        """Remove *subscriber* from every set; return the projects it left."""
        projects = set(self._joined.get(subscriber, ()))
        for project_id in projects:
            self.leave(subscriber, project_id)
        return projects

    def forget(self, subscriber: Subscriber) -> set[str]:
        """Remove a disconnected *subscriber* for good; return the projects it left."""
        self._gone.add(subscriber)
        return self.leave_all(subscriber)

    def replace(self, subscriber: Subscriber, project_id: str) -> bool:
        """Make *project_id* the only set *subscriber* belongs to.

        Returns ``False``, leaving the registry untouched, if *subscriber*
        has been forgotten.
        """
        if subscriber in self._gone:
            return False
        self.leave_all(subscriber)
        self.join(subscriber, project_id)
        return True

    def subscribers(self, project_id: str) -> frozenset[Subscriber]:
        return frozenset(self._members.get(project_id, ()))

    def projects(self, subscriber: Subscriber) -> frozenset[str]:
        return frozenset(self._joined.get(subscriber, ()))
