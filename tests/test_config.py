from pathlib import Path

import pytest

from reposcan.config import ConfigError, ScanConfig, load_config, parse_config
from reposcan.scanner import DEFAULT_EXCLUDE, DEFAULT_MAX_FILE_SIZE, DEFAULT_TIMEOUT_MS


def test_defaults_apply_when_nothing_is_set(tmp_path):
    options = ScanConfig().to_options(tmp_path)

    assert options.root_path == tmp_path
    assert options.exclude_patterns == DEFAULT_EXCLUDE
    assert options.max_file_size == DEFAULT_MAX_FILE_SIZE
    assert options.timeout_ms == DEFAULT_TIMEOUT_MS


def test_load_config_file(tmp_path):
    config_file = tmp_path / "reposcan.yaml"
    config_file.write_text(
        """
exclude:
  - vendor
  - third_party
max_file_size: 2048
timeout_ms: 5000
rules:
  - rules/extra.yaml
""".strip(),
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.exclude == ("vendor", "third_party")
    assert config.max_file_size == 2048
    assert config.timeout_ms == 5000
    assert config.rules == [tmp_path / "rules" / "extra.yaml"]


def test_later_sources_override_earlier_ones():
    base = ScanConfig(exclude=("vendor",), max_file_size=10, timeout_ms=20, rules=[Path("a.yaml")])
    cli = ScanConfig(max_file_size=99, rules=[Path("b.yaml")])

    merged = base.merged(cli)

    assert merged.exclude == ("vendor",)
    assert merged.max_file_size == 99
    assert merged.timeout_ms == 20
    assert merged.rules == [Path("a.yaml"), Path("b.yaml")]


def test_empty_config_file_is_allowed(tmp_path):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("", encoding="utf-8")

    assert load_config(config_file) == ScanConfig()


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"unknown": 1},
        {"max_file_size": -1},
        {"timeout_ms": "fast"},
        {"timeout_ms": True},
        {"exclude": [1, 2]},
    ],
)
def test_invalid_config_values(data):
    with pytest.raises(ConfigError):
        parse_config(data, Path("config.yaml"))


def test_single_string_exclude_is_accepted():
    assert parse_config({"exclude": "vendor"}, Path("c.yaml")).exclude == ("vendor",)


def test_missing_or_broken_config_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("exclude: [vendor", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(broken)

