"""
Collaborator services consumed by the editor

Critical-path analysis and resource leveling.
"""

from .critical_path import CpmCriticalPathService, CpmTiming, CriticalPathService
from .leveling import (
    GreedyLevelingSolver,
    LevelingResult,
    LevelingRunner,
    ResourceLevelingSolver,
    SolverStatus,
)

__all__ = [
    "CpmCriticalPathService",
    "CpmTiming",
    "CriticalPathService",
    "GreedyLevelingSolver",
    "LevelingResult",
    "LevelingRunner",
    "ResourceLevelingSolver",
    "SolverStatus",
]
