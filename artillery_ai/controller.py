"""
Turn driver for computer-controlled teams.

The match calls begin_turn() when an AI team's turn starts, update() every
frame and end_turn() when the turn is over. The turn is played once input is
allowed and the session reports the local turn as active. On a team's first
AI turn of a match the farthest combatant from the enemy opens; a match
restart (the turn index going backwards) makes the next turn an opening
turn again.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .config import AiSettings
from .entities import Team
from .executor import play_turn_for_team
from .gateway import play_turn_for_team_async
from .orchestrator import TurnPlan
from .scheduler import Scheduler
from .session import LiveSession
from .team_selection import find_farthest_index
from .worker import PlannerWorkerClient

logger = logging.getLogger(__name__)


@dataclass
class TurnContext:
    """Who is playing and where."""
    session: LiveSession
    team: Team


class AiTurnController:
    """Plays AI turns for one or more teams."""

    def __init__(
        self,
        scheduler: Scheduler,
        client: Optional[PlannerWorkerClient] = None,
        settings: Optional[AiSettings] = None,
    ) -> None:
        self.scheduler = scheduler
        self.client = client
        self.settings = settings
        self._pending_start = False
        self._opened_teams: set[str] = set()
        self._last_turn_index: Optional[int] = None

    @property
    def pending(self) -> bool:
        return self._pending_start

    def begin_turn(self, context: TurnContext) -> None:
        self._pending_start = True

    def end_turn(self) -> None:
        self._pending_start = False

    def update(
        self,
        context: TurnContext,
        allow_input: bool,
    ) -> Union[asyncio.Task, Optional[TurnPlan]]:
        """
        Start the pending turn when possible.

        Inside a running event loop the turn is planned through the async
        gateway and the task is returned; otherwise it is planned inline and
        the plan is returned. Returns None when nothing was started.
        """
        if not self._pending_start or not allow_input:
            return None
        session = context.session
        if not session.is_local_turn_active():
            return None
        self._pending_start = False

        self._open_turn(context)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return play_turn_for_team(session, context.team.id, self.scheduler, self.settings)
        return loop.create_task(play_turn_for_team_async(
            session, context.team.id, self.scheduler, self.client, self.settings,
        ))

    def _open_turn(self, context: TurnContext) -> None:
        session = context.session
        turn_index = session.turn_index
        if self._last_turn_index is not None and turn_index < self._last_turn_index:
            # Match restarted
            self._opened_teams.clear()
        self._last_turn_index = turn_index

        team = context.team
        if team.id in self._opened_teams or not team.members:
            return
        self._opened_teams.add(team.id)
        enemies = [t for t in session.teams if t.id != team.id]
        index = find_farthest_index(team, enemies)
        session.select_combatant(team.id, index)
        logger.info("Team %s opens with %s", team.id, team.members[index].name)
