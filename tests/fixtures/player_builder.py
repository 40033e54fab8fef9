"""A player builder whose three settings can be made in any order, once each."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stateshift import require, switch_to, type_state


@dataclass
class Player:
    race: str
    level: int
    skill_slots: int
    nickname: Optional[str] = None


@type_state(
    states=(Initial, RaceSet, LevelSet, SkillSlotsSet),
    slots=(Initial, Initial, Initial),
)
@dataclass
class PlayerBuilder:
    race: Optional[str] = None
    level: Optional[int] = None
    skill_slots: Optional[int] = None
    nickname: Optional[str] = None

    @staticmethod
    @require(Initial, Initial, Initial)
    def new() -> PlayerBuilder:
        return PlayerBuilder()

    @require(Initial, ..., ...)
    @switch_to(RaceSet, ..., ...)
    def set_race(self, race: str) -> PlayerBuilder:
        return PlayerBuilder(
            race=race,
            level=self.level,
            skill_slots=self.skill_slots,
            nickname=self.nickname,
        )

    @require(..., Initial, ...)
    @switch_to(..., LevelSet, ...)
    def set_level(self, level: int) -> PlayerBuilder:
        return PlayerBuilder(
            race=self.race,
            level=level,
            skill_slots=self.skill_slots,
            nickname=self.nickname,
        )

    @require(..., ..., Initial)
    @switch_to(..., ..., SkillSlotsSet)
    def set_skill_slots(self, skill_slots: int) -> PlayerBuilder:
        return PlayerBuilder(
            race=self.race,
            level=self.level,
            skill_slots=skill_slots,
            nickname=self.nickname,
        )

    @require(..., ..., ...)
    def with_nickname(self, nickname: str) -> PlayerBuilder:
        return PlayerBuilder(
            race=self.race,
            level=self.level,
            skill_slots=self.skill_slots,
            nickname=nickname,
        )

    @require(RaceSet, LevelSet, SkillSlotsSet)
    def build(self) -> Player:
        assert self.race is not None
        assert self.level is not None
        assert self.skill_slots is not None
        return Player(
            race=self.race,
            level=self.level,
            skill_slots=self.skill_slots,
            nickname=self.nickname,
        )

    def describe(self) -> str:
        return f"{self.race or '?'} level {self.level or 0}"
