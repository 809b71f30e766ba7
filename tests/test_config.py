"""Tests for configuration loading (pageindex/config.py)."""

import pytest

from pageindex.config import DEFAULT_MODEL, PageIndexConfig, load_config, parse_bool
from pageindex.errors import ConfigError


class TestDefaults:
    def test_defaults(self):
        config = load_config()
        assert config.model == DEFAULT_MODEL
        assert config.toc_check_page_num == 20
        assert config.max_page_num_each_node == 10
        assert config.max_token_num_each_node == 20000
        assert config.accept_accuracy == 0.6
        assert config.if_add_node_id is True
        assert config.if_add_node_summary is False

    def test_worker_count(self):
        assert PageIndexConfig(max_workers=3).worker_count() == 3
        assert 1 <= PageIndexConfig().worker_count() <= 32


class TestYamlFile:
    def test_file_values_applied(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("model: claude-test\nif_add_node_summary: yes\n"
                        "verify_sample_size: 5\nllm_timeout_seconds: 30\n")
        config = load_config(str(path))
        assert config.model == "claude-test"
        assert config.if_add_node_summary is True
        assert config.verify_sample_size == 5
        assert config.llm_timeout_seconds == 30.0

    def test_overrides_beat_file_and_none_is_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("model: from-file\ntoc_check_page_num: 12\n")
        config = load_config(str(path), {"model": "from-cli", "toc_check_page_num": None,
                                         "if_add_node_id": "no"})
        assert config.model == "from-cli"
        assert config.toc_check_page_num == 12
        assert config.if_add_node_id is False

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("no_such_option: 1\n")
        with pytest.raises(ConfigError, match="no_such_option"):
            load_config(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("model: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "absent.yaml"))


class TestValues:
    @pytest.mark.parametrize("value,expected", [
        ("yes", True), ("No", False), ("true", True), ("0", False), (True, True)])
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_parse_bool_rejects_other(self):
        with pytest.raises(ConfigError):
            parse_bool("maybe")

    def test_bad_int(self):
        with pytest.raises(ConfigError):
            load_config(overrides={"toc_check_page_num": "many"})

    def test_accuracy_range(self):
        with pytest.raises(ConfigError):
            load_config(overrides={"accept_accuracy": 1.5})

    @pytest.mark.parametrize("overrides", [
        {"verify_sample_size": 0},
        {"verify_sample_size": -1},
        {"repair_max_attempts": -1},
    ])
    def test_counts_out_of_range(self, overrides):
        with pytest.raises(ConfigError):
            load_config(overrides=overrides)

    def test_count_limits_accept_edges(self):
        config = load_config(overrides={"verify_sample_size": 1, "repair_max_attempts": 0})
        assert (config.verify_sample_size, config.repair_max_attempts) == (1, 0)
