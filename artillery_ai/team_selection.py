"""Farthest-combatant rule used for personality assignment and opening turns."""

from __future__ import annotations

from typing import Iterable

from .entities import Combatant, Team


def _alive_or_all(members: list[Combatant]) -> list[Combatant]:
    alive = [c for c in members if c.alive]
    return alive if alive else members


def _mean_x(members: list[Combatant]) -> float:
    if not members:
        return 0.0
    return sum(c.x for c in members) / len(members)


def find_farthest_index(team: Team, enemy_teams: Iterable[Team]) -> int:
    """
    Index of the team member farthest from the enemy side.

    Only living members count (all members if none is alive). When the team's
    mean x is at or right of the enemies' mean x (or of 0 without enemies) the
    rightmost member wins, otherwise the leftmost. The first member in list
    order wins ties.

    Returns:
        Index into ``team.members`` (0 for an empty team).
    """
    if not team.members:
        return 0

    candidates = _alive_or_all(team.members)
    candidate_ids = {id(c) for c in candidates}
    enemies: list[Combatant] = []
    for enemy_team in enemy_teams:
        enemies.extend(_alive_or_all(enemy_team.members))

    team_center = _mean_x(candidates)
    pick_rightmost = team_center >= (_mean_x(enemies) if enemies else 0.0)

    selected = next(
        (i for i, c in enumerate(team.members) if id(c) in candidate_ids), 0
    )
    selected_x = team.members[selected].x
    for i, member in enumerate(team.members):
        if id(member) not in candidate_ids:
            continue
        better = member.x > selected_x if pick_rightmost else member.x < selected_x
        if better:
            selected = i
            selected_x = member.x
    return selected
