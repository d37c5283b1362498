"""Tests for the command line interface."""

import pytest
from unittest.mock import Mock, patch
from typer.testing import CliRunner

from dockyard.agent.engine import StateEngine
from dockyard.cli.main import app
from dockyard.core.normalize import normalize
from dockyard.exceptions import InvalidSpecification
from dockyard.providers.image import ImageProvider
from dockyard.state.store import StateStore


runner = CliRunner()


@pytest.fixture
def config_manager():
    manager = Mock()
    manager.images = {"alpine": normalize({"name": "alpine:3.18"})}
    manager.errors = {}
    manager.complete = True
    return manager


@pytest.fixture
def state_engine(config_manager, fake_engine, tmp_path):
    return StateEngine(config_manager, ImageProvider(fake_engine), StateStore(tmp_path))


@pytest.fixture
def wired(config_manager, state_engine):
    """Patch configuration loading and engine wiring."""
    with patch("dockyard.cli.main._load_config", return_value=config_manager), \
         patch("dockyard.cli.main.create_state_engine", return_value=state_engine):
        yield state_engine


def test_plan_shows_create(wired):
    result = runner.invoke(app, ["plan"])

    assert result.exit_code == 0
    assert "alpine" in result.output
    assert "create" in result.output


def test_apply_then_status(wired, fake_engine):
    result = runner.invoke(app, ["apply", "--quiet"])

    assert result.exit_code == 0
    assert fake_engine.calls_of("pull")

    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "alpine" in result.output


def test_apply_failure_exits_nonzero(wired, config_manager):
    config_manager.images = {"gone": normalize({"name": "missing/image"})}

    result = runner.invoke(app, ["apply", "--quiet"])

    assert result.exit_code == 1
    assert "EngineOperationFailed" in result.output


def test_plan_changes_only_without_changes(wired):
    runner.invoke(app, ["apply", "--quiet"])

    result = runner.invoke(app, ["plan", "--changes"])

    assert result.exit_code == 0
    assert "No changes." in result.output


def test_destroy_unknown_resource(wired):
    result = runner.invoke(app, ["destroy", "nope", "--force"])

    assert result.exit_code == 1
    assert "has no record" in result.output


def test_destroy_aborted_without_confirmation(wired, fake_engine):
    result = runner.invoke(app, ["destroy", "alpine"], input="n\n")

    assert result.exit_code != 0
    assert fake_engine.calls == []


def test_cancel(wired, fake_engine):
    result = runner.invoke(app, ["cancel", "build-42"])

    assert result.exit_code == 0
    assert fake_engine.calls_of("cancel") == [("cancel", "build-42")]


def test_reconcile_error_is_reported(wired):
    wired.reconcile = Mock(side_effect=InvalidSpecification("bad build", resource="web"))

    result = runner.invoke(app, ["apply", "--quiet"])

    assert result.exit_code == 1
    assert "InvalidSpecification" in result.output


def test_validate(config_manager):
    config_manager.errors = {"web": InvalidSpecification("context is required", resource="web")}
    with patch("dockyard.cli.main._load_config", return_value=config_manager):
        result = runner.invoke(app, ["validate"])

    assert result.exit_code == 1
    assert "alpine" in result.output
    assert "context is required" in result.output


def test_validate_unparseable_file(tmp_path):
    (tmp_path / "images").mkdir()
    (tmp_path / "images" / "a.yaml").write_text("web:\n  name: [unclosed\n")
    (tmp_path / "images" / "b.yaml").write_text("alpine:\n  name: alpine:3.18\n")

    with patch("dockyard.cli.main.setup_logging"):
        result = runner.invoke(app, ["validate", "-c", str(tmp_path)])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "alpine" in result.output
    assert "images/a.yaml" in result.output


def test_unparseable_main_config_is_reported(tmp_path):
    (tmp_path / "config.yaml").write_text("agent: [unclosed\n")

    result = runner.invoke(app, ["plan", "-c", str(tmp_path)])

    assert result.exit_code == 1
    assert "InvalidSpecification" in result.output
