"""
Tests for the registry builder.
"""

import ast

import pytest
from stateshift import runtime
from stateshift.expander.registry import Registry


def render_into(registry, module_name="registry_probe"):
    """Execute the rendered registry, return the namespace it defined."""
    namespace = {"__name__": module_name, "_stateshift": runtime}
    code = compile(ast.Module(body=registry.render(), type_ignores=[]), "<registry>", "exec")
    exec(code, namespace)
    return namespace


class TestBuild:
    """Test registry construction."""

    def test_markers_in_order(self):
        registry = Registry.build("PlayerBuilder", 3, ["Initial", "RaceSet", "LevelSet"])
        assert registry.states == ("Initial", "RaceSet", "LevelSet")
        assert registry.marker_names == ("PlayerBuilderInitial", "PlayerBuilderRaceSet", "PlayerBuilderLevelSet")

    def test_duplicates_collapse(self):
        """Repeated states yield one marker each."""
        registry = Registry.build("Door", 2, ["Initial", "Initial", "Framed", "Initial"])
        assert registry.states == ("Initial", "Framed")

    def test_boundary_names(self):
        registry = Registry.build("Door", 1, ["Initial"])
        assert registry.sealing_name == "_SealedDoor"
        assert registry.capability_name == "SealerDoor"
        assert registry.sealing_members == ("SealerDoor", "DoorInitial")

    def test_marker_for(self):
        registry = Registry.build("Door", 1, ["Initial", "Framed"])
        assert registry.marker_for("Framed") == "DoorFramed"
        with pytest.raises(KeyError):
            registry.marker_for("Open")

    def test_satisfies(self):
        """Only this type's markers satisfy its capability."""
        registry = Registry.build("Door", 1, ["Initial"])
        assert registry.satisfies("DoorInitial", "SealerDoor")
        assert not registry.satisfies("WindowInitial", "SealerDoor")
        assert not registry.satisfies("DoorInitial", "SealerWindow")


class TestRender:
    """Test the generated declarations."""

    def test_declaration_order(self):
        """Sealing boundary, capability boundary, then one marker per state."""
        registry = Registry.build("Door", 1, ["Initial", "Framed"])
        names = [node.name for node in registry.render()]
        assert names == ["_SealedDoor", "SealerDoor", "DoorInitial", "DoorFramed"]

    def test_markers_are_final(self):
        registry = Registry.build("Door", 1, ["Initial"])
        marker = registry.render()[-1]
        assert ast.unparse(marker.decorator_list[0]) == "_stateshift.final"
        assert ast.unparse(marker.bases[0]) == "SealerDoor"

    def test_custom_runtime_alias(self):
        registry = Registry.build("Door", 1, ["Initial"])
        sealing = registry.render("rt")[0]
        assert ast.unparse(sealing.bases[0]) == "rt.Sealed"

    def test_render_is_deterministic(self):
        first = Registry.build("Door", 2, ["Initial", "Framed"])
        second = Registry.build("Door", 2, ["Initial", "Framed"])
        assert [ast.unparse(n) for n in first.render()] == [ast.unparse(n) for n in second.render()]

    def test_rendered_markers_satisfy_capability(self):
        """Executed, every marker is a subclass of the capability boundary."""
        namespace = render_into(Registry.build("Door", 1, ["Initial", "Framed"]))
        sealer = namespace["SealerDoor"]
        assert runtime.is_member(namespace["DoorInitial"], sealer)
        assert runtime.is_member(namespace["DoorFramed"], sealer)
        assert namespace["_SealedDoor"].sealed_owner() == "Door"

    def test_registries_do_not_mix(self):
        """Two tracked types with the same state name stay apart."""
        doors = render_into(Registry.build("Door", 1, ["Initial"]))
        windows = render_into(Registry.build("Window", 1, ["Initial"]))
        assert not runtime.is_member(doors["DoorInitial"], windows["SealerWindow"])
        assert not runtime.is_member(windows["WindowInitial"], doors["SealerDoor"])

    def test_outside_marker_rejected(self):
        """A class not listed by the registry cannot join the boundary."""
        namespace = render_into(Registry.build("Door", 1, ["Initial"]))
        with pytest.raises(runtime.SealedError):
            type("DoorOpen", (namespace["SealerDoor"],), {})
