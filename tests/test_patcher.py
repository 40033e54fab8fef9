"""
Tests for the body patcher.
"""

import ast

from stateshift.config import ExpanderConfig
from stateshift.expander.model import RECEIVER_CLS
from stateshift.expander.patcher import patch_body, phantom_value

from conftest import make_tracked, parse_function


PLAYER = '''
@type_state(slots=3, default=Initial)
class PlayerBuilder:
    race: str = ""
'''

DOOR = '''
@type_state(slots=1, default=Initial)
class Door:
    width: int = 80
'''

PHANTOMS = "_state=(_stateshift.Phantom(), _stateshift.Phantom(), _stateshift.Phantom())"


def patch(source, tracked_source=PLAYER, receiver=None, config=None):
    config = config or ExpanderConfig.defaults()
    tracked = make_tracked(tracked_source, config)
    func = parse_function(source)
    body, count = patch_body(func.body, tracked, config, receiver)
    return "\n".join(ast.unparse(statement) for statement in body), count


class TestPhantomValue:
    """Test the injected state value."""

    def test_one_per_slot(self):
        config = ExpanderConfig.defaults()
        value = phantom_value(make_tracked(PLAYER), config)
        assert ast.unparse(value) == "(_stateshift.Phantom(), _stateshift.Phantom(), _stateshift.Phantom())"

    def test_single_slot_is_bare(self):
        config = ExpanderConfig.defaults()
        assert ast.unparse(phantom_value(make_tracked(DOOR), config)) == "_stateshift.Phantom()"

    def test_runtime_alias(self):
        config = ExpanderConfig.defaults(runtime_alias="rt")
        assert ast.unparse(phantom_value(make_tracked(DOOR, config), config)) == "rt.Phantom()"


class TestPatchBody:
    """Test finding and patching constructions."""

    def test_direct_construction(self):
        text, count = patch('''
        def set_race(self, race):
            return PlayerBuilder(race=race)
        ''')
        assert text == f"return PlayerBuilder(race=race, {PHANTOMS})"
        assert count == 1

    def test_wrapped_construction(self):
        """Constructions inside wrappers are found at any depth."""
        text, count = patch('''
        def set_race(self, race):
            return Some(Ok(PlayerBuilder(race=race)))
        ''')
        assert text == f"return Some(Ok(PlayerBuilder(race=race, {PHANTOMS})))"
        assert count == 1

    def test_empty_branch_untouched(self):
        """A branch returning the wrapper's empty variant needs no patch."""
        text, count = patch('''
        def restock(self, items):
            if not items:
                return None
            return Door(width=len(items))
        ''', DOOR)
        assert "return None" in text
        assert "Door(width=len(items), _state=_stateshift.Phantom())" in text
        assert count == 1

    def test_every_statement(self):
        text, count = patch('''
        def build(self):
            first = Door()
            for _ in range(2):
                first = Door(width=first.width + 1)
            return first
        ''', DOOR)
        assert count == 2
        assert text.count("_state=_stateshift.Phantom()") == 2

    def test_nested_construction_in_arguments(self):
        text, count = patch('''
        def pair(self):
            return Door(width=Door().width)
        ''', DOOR)
        assert text == "return Door(width=Door(_state=_stateshift.Phantom()).width, _state=_stateshift.Phantom())"
        assert count == 2

    def test_qualified_construction(self):
        text, _ = patch('''
        def make(self):
            return models.Door()
        ''', DOOR)
        assert text == "return models.Door(_state=_stateshift.Phantom())"

    def test_cls_construction_for_classmethods(self):
        source = '''
        def blank(cls):
            return cls()
        '''
        assert patch(source, DOOR, receiver=RECEIVER_CLS)[0] == "return cls(_state=_stateshift.Phantom())"
        assert patch(source, DOOR)[1] == 0

    def test_existing_state_keyword_kept(self):
        text, count = patch('''
        def copy(self):
            return Door(width=1, _state=self._state)
        ''', DOOR)
        assert text == "return Door(width=1, _state=self._state)"
        assert count == 1

    def test_nested_scopes_untouched(self):
        """Lambdas and inner functions are separate scopes."""
        text, count = patch('''
        def later(self):
            make = lambda: Door()
            def inner():
                return Door()
            return make
        ''', DOOR)
        assert count == 0
        assert "_state" not in text

    def test_other_calls_untouched(self):
        text, count = patch('''
        def build(self):
            return Player(race=self.race)
        ''')
        assert text == "return Player(race=self.race)"
        assert count == 0

    def test_custom_state_field(self):
        config = ExpanderConfig.defaults(state_field="_phase")
        text, _ = patch('''
        def make(self):
            return Door()
        ''', DOOR, config=config)
        assert text == "return Door(_phase=_stateshift.Phantom())"
