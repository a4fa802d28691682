"""
Closed enumerations for the progression domain.

Every enum is a `str` enum whose value is the snake_case name used in
storage and backup documents. Parsing a stored string goes through
`from_value`, which raises `UnknownEnumValueError` for anything that is not
a member; there is no fallback member.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Type, TypeVar

from src.modules.shared.exceptions import UnknownEnumValueError

_E = TypeVar("_E", bound=enum.Enum)


def _parse(enum_cls: Type[_E], value: Any) -> _E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise UnknownEnumValueError(enum_cls.__name__, value) from None


class StatKind(str, enum.Enum):
    """The six character stats."""

    STRENGTH = "strength"
    AGILITY = "agility"
    ENDURANCE = "endurance"
    INTELLIGENCE = "intelligence"
    FOCUS = "focus"
    CHARISMA = "charisma"

    @classmethod
    def from_value(cls, value: Any) -> "StatKind":
        return _parse(cls, value)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ActivityCategory(str, enum.Enum):
    """
    Grouping of activity kinds for decay eligibility.

    WORKOUT and STUDY decay when neglected; OTHER never decays.
    """

    WORKOUT = "workout"
    STUDY = "study"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> "ActivityCategory":
        return _parse(cls, value)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def decays(self) -> bool:
        return self is not ActivityCategory.OTHER


class ActivityKind(str, enum.Enum):
    """Loggable activity kinds."""

    WORKOUT_WEIGHTS = "workout_weights"
    WORKOUT_CARDIO = "workout_cardio"
    WORKOUT_YOGA = "workout_yoga"
    STUDY_SERIOUS = "study_serious"
    STUDY_CASUAL = "study_casual"
    MEDITATION = "meditation"
    SOCIALIZING = "socializing"
    QUIT_BAD_HABIT = "quit_bad_habit"
    SLEEP_TRACKING = "sleep_tracking"
    DIET_HEALTHY = "diet_healthy"

    @classmethod
    def from_value(cls, value: Any) -> "ActivityKind":
        return _parse(cls, value)

    @classmethod
    def in_category(cls, category: ActivityCategory) -> list["ActivityKind"]:
        return [kind for kind in cls if kind.category is category]

    @property
    def display_name(self) -> str:
        return _ACTIVITY_DISPLAY_NAMES[self]

    @property
    def category(self) -> ActivityCategory:
        return _ACTIVITY_CATEGORIES[self]


_ACTIVITY_DISPLAY_NAMES: Dict[ActivityKind, str] = {
    ActivityKind.WORKOUT_WEIGHTS: "Workout - Weights",
    ActivityKind.WORKOUT_CARDIO: "Workout - Cardio",
    ActivityKind.WORKOUT_YOGA: "Workout - Yoga/Flexibility",
    ActivityKind.STUDY_SERIOUS: "Study - Serious",
    ActivityKind.STUDY_CASUAL: "Study - Casual",
    ActivityKind.MEDITATION: "Meditation/Mindfulness",
    ActivityKind.SOCIALIZING: "Socializing",
    ActivityKind.QUIT_BAD_HABIT: "Quit Bad Habit",
    ActivityKind.SLEEP_TRACKING: "Sleep Tracking",
    ActivityKind.DIET_HEALTHY: "Diet/Healthy Eating",
}

_ACTIVITY_CATEGORIES: Dict[ActivityKind, ActivityCategory] = {
    ActivityKind.WORKOUT_WEIGHTS: ActivityCategory.WORKOUT,
    ActivityKind.WORKOUT_CARDIO: ActivityCategory.WORKOUT,
    ActivityKind.WORKOUT_YOGA: ActivityCategory.WORKOUT,
    ActivityKind.STUDY_SERIOUS: ActivityCategory.STUDY,
    ActivityKind.STUDY_CASUAL: ActivityCategory.STUDY,
    ActivityKind.MEDITATION: ActivityCategory.OTHER,
    ActivityKind.SOCIALIZING: ActivityCategory.OTHER,
    ActivityKind.QUIT_BAD_HABIT: ActivityCategory.OTHER,
    ActivityKind.SLEEP_TRACKING: ActivityCategory.OTHER,
    ActivityKind.DIET_HEALTHY: ActivityCategory.OTHER,
}
