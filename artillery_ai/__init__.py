"""Artillery duel AI turn planner package."""

from .config import (
    AiSettings,
    PrecisionMode,
    ResolvedSettings,
    ScoringWeights,
    resolve_settings,
)

from .controller import (
    AiTurnController,
    TurnContext,
)

from .entities import (
    Combatant,
    Team,
    make_team,
)

from .executor import (
    PlanExecution,
    PlanExecutor,
    execute_plan,
    play_turn,
    play_turn_for_team,
)

from .gateway import (
    play_turn_async,
    play_turn_for_team_async,
)

from .movement import (
    MovementPlan,
    MovementStep,
    did_movement_get_stuck,
    is_forward_progress_blocked,
    plan_movement,
)

from .orchestrator import (
    TurnDebug,
    TurnPlan,
    is_likely_self_hit,
    plan_turn,
)

from .personality import (
    Personality,
    PersonalityStore,
    assign_team_personalities,
    get_personality,
    set_personality,
)

from .planning import (
    PanicPlan,
    PanicStrategy,
    ShotPlan,
    plan_panic_shot,
    plan_shot,
)

from .scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
)

from .scoring import (
    ShotCandidate,
    ShotDebug,
    build_candidates,
    score_candidate,
)

from .session import (
    GamePhase,
    GameSession,
    LiveSession,
    PlanToken,
    capture_token,
    is_token_current,
)

from .targeting import select_target
from .team_selection import find_farthest_index
from .terrain import Terrain
from .weapons import WeaponType

from .worker import (
    PlannerWorkerClient,
    PlannerWorkerError,
    build_snapshot,
    handle_plan_request,
)

__all__ = [
    # Config
    "AiSettings",
    "PrecisionMode",
    "ResolvedSettings",
    "ScoringWeights",
    "resolve_settings",
    # Controller
    "AiTurnController",
    "TurnContext",
    # Entities
    "Combatant",
    "Team",
    "make_team",
    # Executor
    "PlanExecution",
    "PlanExecutor",
    "execute_plan",
    "play_turn",
    "play_turn_for_team",
    # Gateway
    "play_turn_async",
    "play_turn_for_team_async",
    # Movement
    "MovementPlan",
    "MovementStep",
    "did_movement_get_stuck",
    "is_forward_progress_blocked",
    "plan_movement",
    # Orchestrator
    "TurnDebug",
    "TurnPlan",
    "is_likely_self_hit",
    "plan_turn",
    # Personality
    "Personality",
    "PersonalityStore",
    "assign_team_personalities",
    "get_personality",
    "set_personality",
    # Planning
    "PanicPlan",
    "PanicStrategy",
    "ShotPlan",
    "plan_panic_shot",
    "plan_shot",
    # Scheduler
    "AsyncioScheduler",
    "ManualScheduler",
    "Scheduler",
    # Scoring
    "ShotCandidate",
    "ShotDebug",
    "build_candidates",
    "score_candidate",
    # Session
    "GamePhase",
    "GameSession",
    "LiveSession",
    "PlanToken",
    "capture_token",
    "is_token_current",
    # Targeting
    "select_target",
    "find_farthest_index",
    # World
    "Terrain",
    "WeaponType",
    # Worker
    "PlannerWorkerClient",
    "PlannerWorkerError",
    "build_snapshot",
    "handle_plan_request",
]
