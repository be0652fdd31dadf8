"""Unit tests for configuration management"""

import pytest
import json
import os
from pathlib import Path
from unittest.mock import patch
from docintake.config import (
    IntakeConfig, MatchingConfig, ExtractionConfig, ProcessingConfig, OCRConfig, LoggingConfig,
    ConfigValidationError
)


@pytest.fixture
def sample_config_data():
    """Sample configuration data for tests"""
    return {
        "matching": {"base_weight": 0.5, "optional_weight": 0.5, "minimum_gap": 0.1},
        "extraction": {"validated_confidence": 1.0, "unvalidated_confidence": 0.7, "default_window": 40},
        "processing": {"max_concurrent": 8, "continue_on_error": False},
        "ocr": {"threshold": 30, "language": "deu", "enabled": True},
        "logging": {"level": "DEBUG"},
        "data_dir": "~/.docintake-test",
        "templates_dir": "/srv/templates"
    }


class TestMatchingConfig:
    """Test MatchingConfig validation"""

    def test_valid_config(self):
        """Test default matching config is valid"""
        assert MatchingConfig().validate() == []

    def test_weights_out_of_range(self):
        """Test weights outside 0..1 are rejected"""
        errors = MatchingConfig(base_weight=1.5).validate()
        assert any("Base weight" in e for e in errors)

    def test_weights_sum_above_one(self):
        """Test base and optional weight may not exceed 1.0 together"""
        errors = MatchingConfig(base_weight=0.7, optional_weight=0.4).validate()
        assert any("add up" in e for e in errors)

    def test_negative_gap(self):
        """Test negative gap is rejected"""
        assert MatchingConfig(minimum_gap=-0.1).validate()


class TestSectionConfigs:
    """Test validation of the remaining sections"""

    def test_extraction_confidence_range(self):
        errors = ExtractionConfig(unvalidated_confidence=1.2).validate()
        assert any("Unvalidated confidence" in e for e in errors)

    def test_extraction_window(self):
        assert ExtractionConfig(default_window=0).validate()

    def test_processing_concurrency(self):
        errors = ProcessingConfig(max_concurrent=0).validate()
        assert any("at least 1" in e for e in errors)

    def test_ocr_language(self):
        errors = OCRConfig(language="english").validate()
        assert any("3-letter" in e for e in errors)

    def test_ocr_dpi(self):
        assert OCRConfig(dpi=50).validate()

    def test_logging_level(self):
        errors = LoggingConfig(level="LOUD").validate()
        assert any("Invalid log level" in e for e in errors)


class TestIntakeConfig:
    """Test IntakeConfig load/save and settings access"""

    def test_default_config_creation(self):
        """Test default configuration values"""
        with patch.dict(os.environ, {}, clear=True):
            config = IntakeConfig.create_default()
        assert config.matching.base_weight == 0.6
        assert config.matching.optional_weight == 0.4
        assert config.matching.minimum_gap == 0.2
        assert config.processing.max_concurrent == 4
        assert config.processing.continue_on_error is True
        assert config.ocr.enabled is False
        assert config.templates_dir is None
        assert config.templates_path == Path("~/.docintake").expanduser() / "templates"

    def test_load_from_file(self, temp_dir, sample_config_data):
        """Test loading configuration values from JSON"""
        config_path = temp_dir / "config.json"
        config_path.write_text(json.dumps(sample_config_data))

        config = IntakeConfig.load(config_path)

        assert config.matching.minimum_gap == 0.1
        assert config.extraction.default_window == 40
        assert config.processing.max_concurrent == 8
        assert config.processing.continue_on_error is False
        assert config.ocr.language == "deu"
        assert config.logging.level == "DEBUG"
        assert config.templates_path == Path("/srv/templates")

    def test_save_and_load_roundtrip(self, temp_dir):
        """Test saved configuration loads back unchanged"""
        config = IntakeConfig.create_default()
        config.data_dir = str(temp_dir)
        config.matching.minimum_gap = 0.3
        config_path = temp_dir / "config.json"

        config.save(config_path)
        loaded = IntakeConfig.load(config_path)

        assert loaded.matching.minimum_gap == 0.3
        assert loaded.data_dir == str(temp_dir)

    def test_load_with_missing_file(self, temp_dir):
        """Test defaults are used when the file does not exist"""
        config = IntakeConfig.load(temp_dir / "missing.json")
        assert config.matching.base_weight == 0.6

    def test_load_with_corrupted_json(self, temp_dir):
        """Test corrupted JSON falls back to defaults"""
        config_path = temp_dir / "config.json"
        config_path.write_text("{not json")

        config = IntakeConfig.load(config_path)
        assert config.processing.max_concurrent == 4

    def test_load_with_unknown_key(self, temp_dir):
        """Test unknown section keys fall back to defaults"""
        config_path = temp_dir / "config.json"
        config_path.write_text(json.dumps({"matching": {"no_such_key": 1}}))

        config = IntakeConfig.load(config_path)
        assert config.matching == MatchingConfig()

    def test_templates_dir_from_environment(self):
        """Test DOCINTAKE_TEMPLATES_DIR overrides the templates location"""
        with patch.dict(os.environ, {"DOCINTAKE_TEMPLATES_DIR": "/tmp/tpl"}):
            config = IntakeConfig.create_default()
        assert config.templates_path == Path("/tmp/tpl")

    def test_save_creates_backup(self, temp_dir):
        """Test saving over an existing file keeps a backup"""
        config = IntakeConfig.create_default()
        config_path = temp_dir / "config.json"
        config.save(config_path)
        config.matching.minimum_gap = 0.25
        config.save(config_path)

        backup_path = temp_dir / "config.json.backup"
        assert backup_path.exists()
        assert json.loads(backup_path.read_text())["matching"]["minimum_gap"] == 0.2

    def test_validate_and_raise(self, test_config):
        """Test invalid configuration raises with every error listed"""
        test_config.templates_dir = None
        test_config.matching.minimum_gap = 2.0
        test_config.processing.max_concurrent = 0

        with pytest.raises(ConfigValidationError) as exc_info:
            test_config.validate_and_raise()

        assert "Minimum gap" in str(exc_info.value)
        assert "Max concurrent" in str(exc_info.value)

    def test_missing_templates_dir_reported(self, test_config):
        """Test a configured but missing templates directory is a validation error"""
        errors = test_config.validate()
        assert any("Templates directory does not exist" in e for e in errors)

    def test_update_setting(self):
        """Test dot-path updates convert to the current value's type"""
        config = IntakeConfig.create_default()

        config.update_setting("matching.minimum_gap", "0.15")
        config.update_setting("processing.max_concurrent", "6")
        config.update_setting("processing.continue_on_error", "false")
        config.update_setting("ocr.language", "fra")

        assert config.matching.minimum_gap == 0.15
        assert config.processing.max_concurrent == 6
        assert config.processing.continue_on_error is False
        assert config.ocr.language == "fra"

    def test_update_setting_invalid(self):
        """Test invalid keys and values raise"""
        config = IntakeConfig.create_default()

        with pytest.raises(ConfigValidationError):
            config.update_setting("nope.value", "1")
        with pytest.raises(ConfigValidationError):
            config.update_setting("matching.nope", "1")
        with pytest.raises(ConfigValidationError) as exc_info:
            config.update_setting("processing.max_concurrent", "many")
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"

    def test_get_setting(self):
        """Test dot-path reads"""
        config = IntakeConfig.create_default()
        assert config.get_setting("matching.base_weight") == 0.6
        assert config.get_setting("ocr") is config.ocr

        with pytest.raises(ConfigValidationError):
            config.get_setting("matching.unknown")

    def test_path_properties(self, temp_dir):
        """Test derived paths"""
        config = IntakeConfig.create_default()
        config.data_dir = str(temp_dir)
        config.templates_dir = None

        assert config.data_path == temp_dir
        assert config.logs_path == temp_dir / "logs"
        assert config.templates_path == temp_dir / "templates"
