"""Tests for settings resolution

Run with pytest from project root:
    pytest tests/test_config_manager.py -v
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from managers.config_manager import (
    HARDCODED_DEFAULTS,
    get_config_dir,
    get_config_file,
    get_env_overrides,
    load_config_file,
    load_settings,
)


class TestConfigLocation:
    """Tests for config file discovery"""

    def test_config_dir_linux(self):
        """Linux uses ~/.config/x1punks"""
        with patch("platform.system", return_value="Linux"):
            assert get_config_dir() == Path.home() / ".config" / "x1punks"

    def test_config_dir_mac(self):
        """macOS uses Application Support"""
        with patch("platform.system", return_value="Darwin"):
            assert get_config_dir() == Path.home() / "Library" / "Application Support" / "x1punks"

    def test_config_file_env_override(self, tmp_path):
        """X1PUNKS_CONFIG points at an explicit file"""
        target = tmp_path / "custom.json"
        assert get_config_file({"X1PUNKS_CONFIG": str(target)}) == target

    def test_load_config_file_broken(self, tmp_path):
        """A broken config file is ignored"""
        path = tmp_path / "config.json"
        path.write_text("[oops")
        assert load_config_file(path) == {}


class TestLoadSettings:
    """Tests for precedence and coercion"""

    def test_defaults(self, tmp_path):
        """Hardcoded defaults apply when nothing else is set"""
        settings = load_settings(project_root=tmp_path, config_file=tmp_path / "none.json", env={})
        assert settings.total_supply == 10000
        assert settings.port == 3000
        assert settings.upload_batch_size == 5
        assert settings.rpc_url == "https://rpc.testnet.x1.xyz"
        assert settings.generated_dir == tmp_path.resolve() / "generated"
        assert settings.traits_csv == tmp_path.resolve() / "punks.whitelabel" / "punks.csv"

    def test_env_coerced(self, tmp_path):
        """X1PUNKS_<KEY> values are coerced to the default's type"""
        env = {"X1PUNKS_PORT": "8080", "X1PUNKS_USE_MEMO": "false", "X1PUNKS_UPLOAD_DELAY_SECONDS": "0.5"}
        assert set(get_env_overrides(env)) == {"port", "use_memo", "upload_delay_seconds"}

        settings = load_settings(project_root=tmp_path, config_file=tmp_path / "none.json", env=env)
        assert settings.port == 8080
        assert settings.use_memo is False
        assert settings.upload_delay_seconds == 0.5

    def test_precedence(self, tmp_path):
        """Explicit overrides beat the config file, which beats env"""
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"port": 4000, "max_quantity": 3, "bogus": 1}))
        env = {"X1PUNKS_PORT": "5000", "X1PUNKS_MAX_QUANTITY": "7", "X1PUNKS_HOST": "0.0.0.0"}

        settings = load_settings(project_root=tmp_path, config_file=config, env=env, max_quantity=2)
        assert settings.port == 4000
        assert settings.max_quantity == 2
        assert settings.host == "0.0.0.0"

    def test_absolute_paths_kept(self, tmp_path):
        """Absolute paths are not re-rooted"""
        target = tmp_path / "elsewhere" / "state.json"
        settings = load_settings(
            project_root=tmp_path, config_file=tmp_path / "none.json", env={}, mint_state_file=str(target)
        )
        assert settings.mint_state_file == target

    def test_invalid_supply(self, tmp_path):
        """A non-positive supply is rejected"""
        with pytest.raises(ValueError):
            load_settings(project_root=tmp_path, config_file=tmp_path / "none.json", env={}, total_supply=0)

    def test_fallback_image_for(self, tmp_path):
        """The fallback template is filled with the punk id"""
        settings = load_settings(project_root=tmp_path, config_file=tmp_path / "none.json", env={})
        assert settings.fallback_image_for(42).endswith("/generated/punk_42.png")

    def test_to_dict_covers_every_key(self, tmp_path):
        """to_dict exposes every setting as JSON-friendly values"""
        settings = load_settings(project_root=tmp_path, config_file=tmp_path / "none.json", env={})
        data = settings.to_dict()
        assert set(HARDCODED_DEFAULTS) <= set(data)
        assert isinstance(data["generated_dir"], str)
