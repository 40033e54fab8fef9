"""
Authoring decorators.

These are consumed (and removed) by the expander. At runtime they are
identity decorators, so an unexpanded module that names its markers as
strings (as below) still imports. A module naming bare markers only runs
once expanded.

Usage:
    @type_state(states=("Initial", "RaceSet"), slots=("Initial",))
    @dataclass
    class PlayerBuilder:
        race: Optional[Race] = None

        @require("Initial")
        @switch_to("RaceSet")
        def set_race(self, race: Race) -> PlayerBuilder:
            return PlayerBuilder(race=race)
"""

from typing import Any, Callable, TypeVar

_T = TypeVar("_T")


def _identity(*args: Any, **kwargs: Any) -> Callable[[_T], _T]:
    def decorate(target: _T) -> _T:
        return target
    return decorate


def type_state(**kwargs: Any) -> Callable[[_T], _T]:
    """Declare slot arity, default markers and (optionally) the marker alphabet."""
    return _identity(**kwargs)


def states(*names: Any) -> Callable[[_T], _T]:
    """Declare the full marker alphabet of a tracked class."""
    return _identity(*names)


def require(*slots: Any) -> Callable[[_T], _T]:
    """Precondition: one marker name or ``...`` per slot."""
    return _identity(*slots)


def switch_to(*slots: Any) -> Callable[[_T], _T]:
    """Postcondition: one marker name or ``...`` (unchanged) per slot."""
    return _identity(*slots)
