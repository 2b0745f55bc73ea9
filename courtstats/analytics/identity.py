"""Cross-match player identity resolution."""
from __future__ import annotations

from typing import Protocol

from ..models import Player


class IdentityResolver(Protocol):
    def key_for(self, player: Player) -> str:
        """Return the aggregate key for a per-match roster entry."""
        ...


def normalise_name(name: str) -> str:
    return " ".join((name or "").split()).casefold()


class NumberNameResolver:
    """
    Key players by jersey number and normalised name, e.g. ``"7-ana"``.

    Two people sharing number and name merge into one aggregate, and a
    player whose number changes between matches splits into two.
    """

    def key_for(self, player: Player) -> str:
        return f"{player.number}-{normalise_name(player.name)}"


DEFAULT_RESOLVER = NumberNameResolver()
