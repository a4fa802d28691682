"""
Wildcard matching of event names against subscription patterns.

Supported forms: exact ("activity.deleted"), global ("*"), prefix
("progression.*"), suffix ("*.applied") and ordered inner wildcards
("activity.*.done").
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> router = EventRouter()
    >>> router.matches("progression.level_up", "progression.*")
    True
    >>> router.matches("progression.level_up", "decay.*")
    False
    >>> router.matches("anything", "*")
    True
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        head, tail = parts[0], parts[-1]

        if head and not event_name.startswith(head):
            return False
        if tail and not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        # Inner fragments must appear in order between head and tail
        idx = len(head)
        limit = len(event_name) - len(tail)
        for fragment in parts[1:-1]:
            if not fragment:
                continue
            found = event_name.find(fragment, idx, limit)
            if found == -1:
                return False
            idx = found + len(fragment)

        return True
