"""
Combatant personalities.

A personality is attached to a combatant through a side-table keyed by the
combatant's identity. The table holds weak references, so an entry never keeps
a combatant alive, and entries can be dropped independently of the
combatant's own lifecycle. A combatant with no entry is a Generalist.
"""

from __future__ import annotations

import logging
import math
import weakref
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .entities import Combatant, Team
from .team_selection import find_farthest_index

logger = logging.getLogger(__name__)


class Personality(Enum):
    """Behaviour archetypes for computer-controlled combatants."""
    GENERALIST = "Generalist"
    MARKSMAN = "Marksman"
    DEMOLISHER = "Demolisher"
    COMMANDO = "Commando"


PERSONALITY_POOL: tuple[Personality, ...] = (
    Personality.GENERALIST,
    Personality.MARKSMAN,
    Personality.DEMOLISHER,
    Personality.COMMANDO,
)

_ALIASES = {
    "generalist": Personality.GENERALIST,
    "marksman": Personality.MARKSMAN,
    "demolisher": Personality.DEMOLISHER,
    "demolitionist": Personality.DEMOLISHER,
    "commando": Personality.COMMANDO,
}


def normalize_personality(
    value: Union[str, Personality, None],
) -> Optional[Personality]:
    """Parse a personality from free text; None when unrecognised."""
    if value is None:
        return None
    if isinstance(value, Personality):
        return value
    return _ALIASES.get(str(value).strip().lower())


class PersonalityStore:
    """Identity-keyed, non-owning personality association."""

    def __init__(self) -> None:
        self._by_combatant: weakref.WeakKeyDictionary[Combatant, Personality] = (
            weakref.WeakKeyDictionary()
        )

    def get(self, combatant: Combatant) -> Personality:
        """Personality of a combatant, Generalist when unassigned."""
        return self._by_combatant.get(combatant, Personality.GENERALIST)

    def set(self, combatant: Combatant, personality: Optional[Personality]) -> None:
        """Assign a personality; None removes the entry."""
        if personality is None:
            self._by_combatant.pop(combatant, None)
            return
        self._by_combatant[combatant] = personality

    def __contains__(self, combatant: Combatant) -> bool:
        return combatant in self._by_combatant

    def __len__(self) -> int:
        return len(self._by_combatant)


_default_store = PersonalityStore()


def get_personality(combatant: Combatant) -> Personality:
    """Personality of a combatant in the process-wide store."""
    return _default_store.get(combatant)


def set_personality(combatant: Combatant, personality: Optional[Personality]) -> None:
    """Set (or clear with None) a combatant's personality in the process-wide store."""
    _default_store.set(combatant, personality)


def pick_random_personality(random: Callable[[], float]) -> Personality:
    """Uniform draw from the pool; random() must return a value in [0, 1)."""
    count = len(PERSONALITY_POOL)
    index = min(count - 1, max(0, math.floor(random() * count)))
    return PERSONALITY_POOL[index]


def assign_team_personalities(
    team: Team,
    enemy_teams: Iterable[Team],
    random: Callable[[], float],
    store: Optional[PersonalityStore] = None,
) -> None:
    """
    Give every team member a random personality, then make the farthest one a Commando.

    Args:
        team: Team to assign.
        enemy_teams: Opposing teams (used by the farthest-combatant rule).
        random: Source of uniform floats in [0, 1).
        store: Personality store (defaults to the process-wide one).
    """
    if not team.members:
        return
    store = store if store is not None else _default_store

    for member in team.members:
        store.set(member, pick_random_personality(random))

    farthest = find_farthest_index(team, list(enemy_teams))
    store.set(team.members[farthest], Personality.COMMANDO)
    logger.debug(
        "Assigned personalities for team %s: %s",
        team.id,
        [store.get(m).value for m in team.members],
    )
