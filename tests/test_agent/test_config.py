"""Tests for agent configuration management."""

import pytest
from unittest.mock import AsyncMock, patch

from dockyard.agent.config import ConfigManager
from dockyard.exceptions import InvalidSpecification


@pytest.fixture
def config_dir(tmp_path):
    """Create a temporary config directory structure."""
    (tmp_path / "images").mkdir()
    (tmp_path / "config.yaml").write_text("""
agent:
  log_level: debug
  state_dir: ./state
timeouts:
  create: 300
""")
    (tmp_path / "images" / "base.yaml").write_text("""
alpine:
  name: alpine:3.18
  platform: linux/amd64
app:
  name: app:latest
  keep_locally: true
  build:
    context: ./app
    tag: ["app:v1"]
    build_args:
      VERSION: "1.0"
""")
    return tmp_path


@pytest.mark.asyncio
class TestConfigManager:
    """Test ConfigManager async operations."""

    async def test_load(self, config_dir):
        manager = ConfigManager(config_dir)

        await manager.load()

        assert manager.config.agent.log_level == "DEBUG"
        assert manager.config.timeouts.create == 300
        assert manager.config.timeouts.delete == 1200
        assert sorted(manager.images) == ["alpine", "app"]
        assert manager.get_image_spec("alpine").platform == "linux/amd64"
        app = manager.get_image_spec("app")
        assert app.keep_locally is True
        assert app.build.dockerfile == "Dockerfile"
        assert app.build.build_args == {"VERSION": "1.0"}
        assert manager.errors == {}

    async def test_defaults_without_main_config(self, tmp_path):
        manager = ConfigManager(tmp_path)

        await manager.load()

        assert manager.config.agent.log_level == "INFO"
        assert manager.images == {}

    async def test_invalid_image_collected(self, config_dir):
        (config_dir / "images" / "bad.yaml").write_text("""
both:
  name: app
  pull_triggers: ["sha256:1"]
  build:
    context: .
scalar: just-a-string
""")
        manager = ConfigManager(config_dir)

        await manager.load()

        assert sorted(manager.errors) == ["both", "scalar"]
        assert manager.errors["both"].kind == "InvalidSpecification"
        assert manager.errors["both"].resource == "both"
        assert "both" not in manager.images
        assert "alpine" in manager.images

    async def test_duplicate_resource(self, config_dir):
        (config_dir / "images" / "more.yaml").write_text("alpine:\n  name: alpine:3.19\n")
        manager = ConfigManager(config_dir)

        await manager.load()

        assert "alpine" in manager.errors
        assert "alpine" not in manager.images

    async def test_read_yaml_threading(self, config_dir):
        """Test that file reads are offloaded to a thread."""
        manager = ConfigManager(config_dir)
        test_file = config_dir / "test.yaml"
        test_file.write_text("key: value")

        with patch("asyncio.to_thread", new_callable=AsyncMock) as mock_to_thread:
            mock_to_thread.return_value = "key: value"

            result = await manager._read_yaml(test_file)

            assert result == {"key": "value"}
            mock_to_thread.assert_called_once()

    async def test_watch_for_changes(self, config_dir):
        manager = ConfigManager(config_dir)
        await manager.load()

        assert await manager.watch_for_changes() is False

        (config_dir / "images" / "base.yaml").write_text("alpine:\n  name: alpine:edge\n")
        assert await manager.watch_for_changes() is True

    async def test_unparseable_file_reported(self, config_dir):
        (config_dir / "images" / "broken.yaml").write_text("web:\n  name: [unclosed\n")
        manager = ConfigManager(config_dir)

        await manager.load()

        assert sorted(manager.images) == ["alpine", "app"]
        assert manager.errors["images/broken.yaml"].kind == "InvalidSpecification"
        assert manager.complete is False
        assert await manager.watch_for_changes() is False

    async def test_unparseable_main_config(self, config_dir):
        (config_dir / "config.yaml").write_text("agent: [unclosed\n")
        manager = ConfigManager(config_dir)

        with pytest.raises(InvalidSpecification):
            await manager.load()

    async def test_deleted_file_settles_after_reload(self, config_dir):
        (config_dir / "images" / "extra.yaml").write_text("busybox:\n  name: busybox\n")
        manager = ConfigManager(config_dir)
        await manager.load()

        (config_dir / "images" / "extra.yaml").unlink()
        assert await manager.watch_for_changes() is True

        await manager.load()
        assert await manager.watch_for_changes() is False
        assert "busybox" not in manager.images
