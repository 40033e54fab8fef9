"""
Tests for the command line interface.
"""

import json
import shutil

import pytest
from stateshift import __version__
from stateshift.cli import main


BROKEN = '''
@type_state(slots=1, default=Closed)
class Door:
    width: int = 80

    @require(Closed, Closed)
    def open(self) -> Door:
        return Door(width=self.width)
'''


@pytest.fixture
def workdir(tmp_path, monkeypatch, fixtures_dir):
    """A temporary directory holding a copy of the player builder fixture."""
    monkeypatch.chdir(tmp_path)
    shutil.copy(fixtures_dir / "player_builder.py", tmp_path / "player_builder.py")
    return tmp_path


class TestExpandCommand:
    """Test `stateshift expand`."""

    def test_prints_expansion(self, workdir, capsys):
        assert main(["expand", "player_builder.py"]) == 0
        out = capsys.readouterr().out
        assert "import stateshift.runtime as _stateshift" in out
        assert "class SealerPlayerBuilder(_SealedPlayerBuilder):" in out

    def test_output_file(self, workdir):
        assert main(["expand", "player_builder.py", "-o", "expanded.py"]) == 0
        assert "class PlayerBuilderRaceSet(SealerPlayerBuilder):" in (workdir / "expanded.py").read_text(encoding="utf-8")

    def test_inplace(self, workdir):
        assert main(["expand", "player_builder.py", "-i"]) == 0
        text = (workdir / "player_builder.py").read_text(encoding="utf-8")
        assert "@type_state" not in text

    def test_errors_write_nothing(self, workdir, capsys):
        (workdir / "broken.py").write_text(BROKEN, encoding="utf-8")
        assert main(["expand", "broken.py", "-i"]) == 1
        assert (workdir / "broken.py").read_text(encoding="utf-8") == BROKEN
        assert "ARITY_MISMATCH" in capsys.readouterr().err

    def test_missing_file(self, workdir, capsys):
        assert main(["expand", "nope.py"]) == 1
        assert "Error" in capsys.readouterr().err


class TestCheckCommand:
    """Test `stateshift check`."""

    def test_clean(self, workdir, capsys):
        assert main(["check", "player_builder.py"]) == 0
        assert "1 tracked type(s), no errors" in capsys.readouterr().out

    def test_json(self, workdir, capsys):
        (workdir / "broken.py").write_text(BROKEN, encoding="utf-8")
        assert main(["check", "broken.py", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["success"] is False
        assert data["diagnostics"][0]["code"] == "ARITY_MISMATCH"
        assert data["diagnostics"][0]["declaration"] == "Door.open"

    def test_config_file(self, workdir, capsys):
        (workdir / "broken.py").write_text(BROKEN, encoding="utf-8")
        (workdir / "strict.yaml").write_text("isolate_failures: false\n", encoding="utf-8")
        assert main(["--config", "strict.yaml", "check", "broken.py", "--json"]) == 1
        data = json.loads(capsys.readouterr().out)
        assert data["types"] == []


class TestRegistryCommand:
    """Test `stateshift registry`."""

    def test_lists_operations(self, workdir, capsys):
        assert main(["registry", "player_builder.py"]) == 0
        out = capsys.readouterr().out
        assert "PlayerBuilder (3 slot(s), defaults: Initial, Initial, Initial)" in out
        assert "capability: SealerPlayerBuilder" in out
        assert (
            "set_race: [PlayerBuilderInitial, _PlayerBuilderB, _PlayerBuilderC]"
            " -> [PlayerBuilderRaceSet, _PlayerBuilderB, _PlayerBuilderC]"
        ) in out


class TestGlobalOptions:
    """Test options shared by every command."""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: stateshift" in capsys.readouterr().out
