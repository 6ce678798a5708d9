"""
taskflow.constants — Badge Codes & Catalog
===========================================

Single source of truth for the fixed badge catalog.  The database seeder
inserts these rows; the badge evaluator reads thresholds from them.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Badge codes
# ---------------------------------------------------------------------------
BADGE_FIRST_TASK = "FIRST_TASK"
BADGE_ON_FIRE = "ON_FIRE"
BADGE_SPRINTER = "SPRINTER"
BADGE_COMMUNICATOR = "COMMUNICATOR"
BADGE_LEADER = "LEADER"
BADGE_CENTURION = "CENTURION"
BADGE_EARLY_BIRD = "EARLY_BIRD"
BADGE_TEAM_PLAYER = "TEAM_PLAYER"

# ---------------------------------------------------------------------------
# Criteria types — which stat a badge rule compares against required_count
# ---------------------------------------------------------------------------
CRITERIA_TASKS_COMPLETED = "TASKS_COMPLETED"
CRITERIA_STREAK_DAYS = "STREAK_DAYS"
CRITERIA_TASKS_IN_DAY = "TASKS_IN_DAY"
CRITERIA_COMMENTS_MADE = "COMMENTS_MADE"
CRITERIA_TOP_RANK = "TOP_RANK"
CRITERIA_EARLY_COMPLETIONS = "EARLY_COMPLETIONS"
CRITERIA_PROJECTS_JOINED = "PROJECTS_JOINED"


@dataclass(frozen=True, slots=True)
class BadgeDefinition:
    """Static catalog entry, mirrored 1:1 into the ``badges`` table."""

    code: str
    name: str
    description: str
    icon: str
    criteria_type: str
    required_count: int
    secret: bool = False


BADGE_CATALOG: tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        BADGE_FIRST_TASK, "Primeira Tarefa", "Complete sua primeira tarefa",
        "trophy", CRITERIA_TASKS_COMPLETED, 1,
    ),
    BadgeDefinition(
        BADGE_ON_FIRE, "Em Chamas", "Mantenha um streak de 7 dias",
        "fire", CRITERIA_STREAK_DAYS, 7,
    ),
    BadgeDefinition(
        BADGE_SPRINTER, "Velocista", "Complete 5 tarefas em um dia",
        "bolt", CRITERIA_TASKS_IN_DAY, 5,
    ),
    BadgeDefinition(
        BADGE_COMMUNICATOR, "Comunicador", "Faca 50 comentarios",
        "comment", CRITERIA_COMMENTS_MADE, 50,
    ),
    BadgeDefinition(
        BADGE_LEADER, "Lider", "Seja top 1 do ranking",
        "crown", CRITERIA_TOP_RANK, 1,
    ),
    BadgeDefinition(
        BADGE_CENTURION, "Centuriao", "Complete 100 tarefas",
        "medal", CRITERIA_TASKS_COMPLETED, 100,
    ),
    BadgeDefinition(
        BADGE_EARLY_BIRD, "Madrugador", "Complete 10 tarefas antes do deadline",
        "clock", CRITERIA_EARLY_COMPLETIONS, 10,
    ),
    BadgeDefinition(
        BADGE_TEAM_PLAYER, "Jogador de Equipe", "Participe de 5 projetos",
        "users", CRITERIA_PROJECTS_JOINED, 5,
    ),
)
