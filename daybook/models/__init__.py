from .memory import Memory, Mood
from .reflection import Reflection, ReflectionTier, Tone
from .selection import WeeklySelection, MonthlySelection
from .trigger import ReflectionTrigger

__all__ = [
    "Memory",
    "Mood",
    "Reflection",
    "ReflectionTier",
    "Tone",
    "WeeklySelection",
    "MonthlySelection",
    "ReflectionTrigger",
]
