"""Tests for mgeconsensus.config."""

import pytest

from mgeconsensus.config import Config, ConfigurationError


class TestConfigDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = Config()
        assert config.merge.proximity == 100
        assert config.reconcile.enabled is True
        assert config.reconcile.min_identity == 90.0
        assert config.reconcile.min_length == 1000
        assert config.cluster.inflation == 2.0
        assert config.cluster.small_prefix == "S"
        assert config.cluster.small_max_length == 0
        assert config.parallel.backend == "threads"

    def test_load_none_gives_defaults(self):
        assert Config.load(None) == Config()


class TestConfigLoading:
    """Tests for YAML loading and validation."""

    def test_partial_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("merge:\n  proximity: 500\nreconcile:\n  min_identity: 95\n")
        config = Config.load(path)
        assert config.merge.proximity == 500
        assert config.reconcile.min_identity == 95
        assert config.reconcile.min_length == 1000

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert Config.load(path) == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config.load(tmp_path / "missing.yaml")

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError, match="Unknown configuration section"):
            Config.from_dict({"plotting": {}})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError, match="proximty"):
            Config.from_dict({"merge": {"proximty": 5}})

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({"merge": {"proximity": -1}})
        with pytest.raises(ConfigurationError):
            Config.from_dict({"cluster": {"inflation": 1.0}})
        with pytest.raises(ConfigurationError):
            Config.from_dict({"reconcile": {"min_identity": 120}})
        with pytest.raises(ConfigurationError):
            Config.from_dict({"parallel": {"backend": "slurm"}})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            Config.load(path)

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
