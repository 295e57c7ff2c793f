"""
Tests for configuration dataclasses and ConfigManager.
"""

import pytest
import yaml

from simsketch.config import (
    ConfigManager,
    LSHConfig,
    MinHashConfig,
    ShingleConfig,
    SimHashConfig,
    SketchConfig,
)
from simsketch.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for suffix in ConfigManager.ENV_OVERRIDES:
        monkeypatch.delenv(f"{ConfigManager.ENV_PREFIX}{suffix}", raising=False)


class TestDataclasses:
    """Test validation on construction."""

    def test_defaults(self):
        config = SketchConfig()
        assert config.minhash.num_hashes == 128
        assert config.lsh.num_bands == 16
        assert config.lsh.rows_per_band == 8
        assert config.simhash.hash_bits == 64
        assert config.simhash.shingles.word_shingle_size == 2

    @pytest.mark.parametrize("kwargs", [
        {"num_bands": 0},
        {"signature_length": 0},
        {"num_bands": 129, "signature_length": 128},
        {"threshold": -0.1},
        {"threshold": "high"},
    ])
    def test_lsh_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            LSHConfig(**kwargs)

    def test_error_carries_option(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SimHashConfig(hash_bits=100)
        assert exc_info.value.option == "hash_bits"
        assert exc_info.value.value == 100
        assert isinstance(exc_info.value, ValueError)

    def test_shingle_sizes(self):
        with pytest.raises(ConfigurationError):
            ShingleConfig(word_shingle_size=0)

    def test_minhash_seed_type(self):
        with pytest.raises(ConfigurationError):
            MinHashConfig(seed="abc")


class TestSerialization:
    """Test dict and YAML round trips."""

    def test_dict_round_trip(self):
        config = SketchConfig(lsh=LSHConfig(num_bands=8, signature_length=64, threshold=0.8))
        assert SketchConfig.from_dict(config.to_dict()) == config

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "sketch.yml"
        config = SketchConfig(simhash=SimHashConfig(hash_bits=32))

        config.save_to_file(path)

        assert yaml.safe_load(path.read_text())["simhash"]["hash_bits"] == 32
        assert SketchConfig.load_from_file(path) == config

    def test_partial_file(self, tmp_path):
        path = tmp_path / "sketch.yml"
        path.write_text("lsh:\n  num_bands: 32\n")

        config = SketchConfig.load_from_file(path)
        assert config.lsh.num_bands == 32
        assert config.minhash == MinHashConfig()

    def test_unknown_section(self):
        with pytest.raises(ConfigurationError):
            SketchConfig.from_dict({"bloom": {}})

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            SketchConfig.from_dict({"lsh": {"bands": 4}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SketchConfig.load_from_file(tmp_path / "missing.yml")

    def test_load_or_default_missing_path(self, tmp_path):
        assert SketchConfig.load_or_default(tmp_path / "missing.yml") == SketchConfig()


class TestConfigManager:
    """Test loading, saving and environment overrides."""

    def test_load_default(self, tmp_path):
        manager = ConfigManager(tmp_path / "sketch.yml")
        assert manager.load() == SketchConfig()

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "sketch.yml"
        ConfigManager(path).save(SketchConfig(minhash=MinHashConfig(num_hashes=64)))

        assert ConfigManager(path).load().minhash.num_hashes == 64

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SIMSKETCH_NUM_BANDS", "8")
        monkeypatch.setenv("SIMSKETCH_THRESHOLD", "0.75")
        monkeypatch.setenv("SIMSKETCH_SEED", "0x10")

        config = ConfigManager(tmp_path / "sketch.yml").load()

        assert config.lsh.num_bands == 8
        assert config.lsh.threshold == 0.75
        assert config.minhash.seed == 16

    def test_malformed_env_ignored(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SIMSKETCH_HASH_BITS", "wide")
        assert ConfigManager(tmp_path / "sketch.yml").load().simhash.hash_bits == 64

    def test_out_of_range_env_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SIMSKETCH_HASH_BITS", "128")
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "sketch.yml").load()
