"""
Tests for the runtime support module.
"""

import pytest
from stateshift.runtime import Phantom, Sealed, SealedError, is_member


class TestPhantom:
    """Test the zero-size slot value."""

    def test_instances_are_interchangeable(self):
        assert Phantom() == Phantom()
        assert hash(Phantom()) == hash(Phantom())
        assert repr(Phantom()) == "Phantom()"

    def test_subscriptable(self):
        """Phantom[X] is usable in annotations evaluated at runtime."""
        assert Phantom[int] is not None


class TestSealed:
    """Test sealing boundaries."""

    def test_listed_members_allowed(self):
        class _SealedThing(Sealed, owner="Thing", members=("SealerThing", "ThingOn")):
            pass

        class SealerThing(_SealedThing):
            pass

        class ThingOn(SealerThing):
            pass

        assert is_member(ThingOn, SealerThing)
        assert SealerThing.sealed_owner() == "Thing"
        assert SealerThing.sealed_members() == frozenset({"SealerThing", "ThingOn"})

    def test_unlisted_member_rejected(self):
        class _SealedThing(Sealed, owner="Thing", members=("SealerThing",)):
            pass

        class SealerThing(_SealedThing):
            pass

        with pytest.raises(SealedError):
            class ThingOff(SealerThing):
                pass

    def test_member_from_other_module_rejected(self):
        """A listed name defined in another module is still rejected."""
        class _SealedThing(Sealed, owner="Thing", members=("SealerThing", "ThingOn")):
            pass

        class SealerThing(_SealedThing):
            pass

        with pytest.raises(SealedError):
            type("ThingOn", (SealerThing,), {"__module__": "somewhere_else"})

    def test_sealed_needs_owner(self):
        with pytest.raises(SealedError):
            class Loose(Sealed):
                pass

    def test_no_nested_boundary(self):
        class _SealedThing(Sealed, owner="Thing", members=("Inner",)):
            pass

        with pytest.raises(SealedError):
            class Inner(_SealedThing, owner="Other"):
                pass

    def test_is_member_rejects_non_classes(self):
        class _SealedThing(Sealed, owner="Thing", members=()):
            pass

        assert not is_member("ThingOn", _SealedThing)
        assert not is_member(int, _SealedThing)
