"""In-memory implementations of the garden monitor collaborator protocols."""

from infrastructure.memory.collaborators import (
    InMemoryAIDecisionService,
    InMemoryAlertSource,
    InMemoryScheduleRepository,
    InMemorySensorSource,
)

__all__ = [
    "InMemoryAIDecisionService",
    "InMemoryAlertSource",
    "InMemoryScheduleRepository",
    "InMemorySensorSource",
]
