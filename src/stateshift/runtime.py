"""
Runtime support for expanded modules.

Expanded code imports this module as ``_stateshift``. It only provides the
zero-size building blocks the generated declarations are made of; it never
checks transitions at runtime (the type checker does that).

- Phantom: marker-carrying value stored in the hidden state field
- Sealed: base of every per-type sealing boundary
- Re-exports of the typing/dataclass names the generated code uses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, FrozenSet, Generic, Optional, Tuple, Type

from typing_extensions import TypeVar, final

__all__ = [
    "Phantom",
    "Sealed",
    "SealedError",
    "is_member",
    "TypeVar",
    "Generic",
    "Tuple",
    "Type",
    "final",
    "dataclass",
    "field",
]


T_co = TypeVar("T_co", covariant=True)


class Phantom(Generic[T_co]):
    """Zero-size value standing in for one state slot."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "Phantom()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Phantom)

    def __hash__(self) -> int:
        return hash(Phantom)


class SealedError(TypeError):
    """A class tried to join a sealing boundary it does not belong to."""


class Sealed:
    """
    Base for per-type sealing boundaries.

    A direct subclass declares a boundary with ``owner=`` and ``members=``
    class keywords. Every further subclass must be listed in ``members`` and
    be defined in the same module as the boundary, so no code outside the
    generated registry can add a marker to it.
    """

    __slots__ = ()

    _sealed_owner: ClassVar[Optional[str]] = None
    _sealed_module: ClassVar[Optional[str]] = None
    _sealed_members: ClassVar[FrozenSet[str]] = frozenset()

    def __init_subclass__(
        cls,
        owner: Optional[str] = None,
        members: Tuple[str, ...] = (),
        **kwargs: object,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if owner is not None:
            if cls._sealed_owner is not None:
                raise SealedError(
                    f"{cls.__name__} cannot open a new boundary inside "
                    f"the {cls._sealed_owner} boundary"
                )
            cls._sealed_owner = owner
            cls._sealed_module = cls.__module__
            cls._sealed_members = frozenset(members)
            return

        if cls._sealed_owner is None:
            raise SealedError(f"{cls.__name__} must declare an owner to derive from Sealed")
        if cls.__module__ != cls._sealed_module or cls.__name__ not in cls._sealed_members:
            raise SealedError(
                f"{cls.__name__} is not a state of {cls._sealed_owner}"
            )

    @classmethod
    def sealed_owner(cls) -> Optional[str]:
        """Name of the tracked type this boundary belongs to."""
        return cls._sealed_owner

    @classmethod
    def sealed_members(cls) -> FrozenSet[str]:
        return cls._sealed_members


def is_member(marker: Type[object], capability: Type[object]) -> bool:
    """True when ``marker`` satisfies ``capability``."""
    return isinstance(marker, type) and issubclass(marker, capability)
