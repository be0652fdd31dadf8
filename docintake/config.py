"""Configuration management for docintake"""

import json
import os
import logging
from pathlib import Path
from typing import Any, Optional, List
from dataclasses import dataclass, asdict

from docintake.errors import ConfigurationError


DEFAULT_DATA_DIR = "~/.docintake"


class ConfigValidationError(ConfigurationError):
    """Raised when configuration validation fails"""
    pass


@dataclass
class MatchingConfig:
    """Template matching configuration"""
    base_weight: float = 0.6  # awarded once all required keywords are present
    optional_weight: float = 0.4
    minimum_gap: float = 0.2  # top candidate must lead the runner-up by this much

    def validate(self) -> List[str]:
        """Validate matching configuration"""
        errors = []

        if not 0.0 <= self.base_weight <= 1.0:
            errors.append("Base weight must be between 0.0 and 1.0")
        if not 0.0 <= self.optional_weight <= 1.0:
            errors.append("Optional weight must be between 0.0 and 1.0")
        if self.base_weight + self.optional_weight > 1.0 + 1e-9:
            errors.append("Base weight and optional weight must not add up to more than 1.0")
        if not 0.0 <= self.minimum_gap <= 1.0:
            errors.append("Minimum gap must be between 0.0 and 1.0")

        return errors


@dataclass
class ExtractionConfig:
    """Field extraction configuration"""
    validated_confidence: float = 1.0
    unvalidated_confidence: float = 0.8
    default_window: int = 60  # characters after a keyword
    case_sensitive_patterns: bool = False

    def validate(self) -> List[str]:
        """Validate extraction configuration"""
        errors = []

        for name in ("validated_confidence", "unvalidated_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name.replace('_', ' ').capitalize()} must be between 0.0 and 1.0")

        if self.default_window <= 0:
            errors.append("Default proximity window must be positive")

        return errors


@dataclass
class ProcessingConfig:
    """Batch processing configuration"""
    max_concurrent: int = 4
    continue_on_error: bool = True
    max_file_size: int = 50 * 1024 * 1024  # 50MB, larger files only warn

    def validate(self) -> List[str]:
        """Validate processing configuration"""
        errors = []

        if self.max_concurrent < 1:
            errors.append("Max concurrent documents must be at least 1")
        if self.max_file_size <= 0:
            errors.append("Max file size must be positive")

        return errors


@dataclass
class OCRConfig:
    """OCR processing configuration"""
    threshold: int = 50  # minimum characters per page to skip OCR
    language: str = "eng"
    tesseract_config: str = "--oem 3 --psm 6"
    dpi: int = 300
    enabled: bool = False

    def validate(self) -> List[str]:
        """Validate OCR configuration"""
        errors = []

        if self.threshold < 0:
            errors.append("OCR threshold cannot be negative")

        if not self.language or len(self.language) != 3:
            errors.append("OCR language must be a 3-letter code (e.g., 'eng', 'deu')")

        if not self.tesseract_config:
            errors.append("Tesseract config cannot be empty")

        if self.dpi < 72:
            errors.append("OCR DPI must be at least 72")

        return errors


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = True
    console_enabled: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    def validate(self) -> List[str]:
        """Validate logging configuration"""
        errors = []

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            errors.append(f"Invalid log level '{self.level}'. Must be one of: {valid_levels}")

        if self.max_file_size <= 0:
            errors.append("Max file size must be positive")

        if self.backup_count < 0:
            errors.append("Backup count cannot be negative")

        return errors


@dataclass
class IntakeConfig:
    """Main docintake configuration"""
    matching: MatchingConfig
    extraction: ExtractionConfig
    processing: ProcessingConfig
    ocr: OCRConfig
    logging: LoggingConfig
    data_dir: str = DEFAULT_DATA_DIR
    templates_dir: Optional[str] = None

    SECTIONS = ("matching", "extraction", "processing", "ocr", "logging")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'IntakeConfig':
        """Load configuration from file or create default"""
        if config_path is None:
            config_path = Path(DEFAULT_DATA_DIR).expanduser() / "config.json"

        try:
            if config_path.exists():
                with open(config_path, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)

                # Ensure all config sections are dictionaries
                sections = {}
                for name in cls.SECTIONS:
                    section_data = config_data.get(name, {})
                    if not isinstance(section_data, dict):
                        section_data = {}
                    sections[name] = section_data

                return cls(
                    matching=MatchingConfig(**sections['matching']),
                    extraction=ExtractionConfig(**sections['extraction']),
                    processing=ProcessingConfig(**sections['processing']),
                    ocr=OCRConfig(**sections['ocr']),
                    logging=LoggingConfig(**sections['logging']),
                    data_dir=config_data.get('data_dir', DEFAULT_DATA_DIR),
                    templates_dir=config_data.get('templates_dir') or os.getenv('DOCINTAKE_TEMPLATES_DIR')
                )
            else:
                return cls.create_default()
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logging.warning(f"Failed to load config from {config_path}: {e}")
            logging.info("Creating default configuration")
            return cls.create_default()

    @classmethod
    def create_default(cls) -> 'IntakeConfig':
        """Create default configuration"""
        return cls(
            matching=MatchingConfig(),
            extraction=ExtractionConfig(),
            processing=ProcessingConfig(),
            ocr=OCRConfig(),
            logging=LoggingConfig(),
            templates_dir=os.getenv('DOCINTAKE_TEMPLATES_DIR')
        )

    def to_dict(self) -> dict:
        """Convert configuration to a JSON-serialisable dictionary"""
        config_dict = {name: asdict(getattr(self, name)) for name in self.SECTIONS}
        config_dict['data_dir'] = self.data_dir
        config_dict['templates_dir'] = self.templates_dir
        return config_dict

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file"""
        if config_path is None:
            config_path = self.data_path / "config.json"

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)

            # Create backup if file exists
            if config_path.exists():
                backup_path = config_path.with_suffix('.json.backup')
                config_path.replace(backup_path)

            with open(config_path, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        except Exception as e:
            raise ConfigValidationError(f"Failed to save configuration: {e}")

    def validate(self) -> List[str]:
        """Validate entire configuration"""
        errors = []

        for name in self.SECTIONS:
            errors.extend(getattr(self, name).validate())

        try:
            data_path = Path(self.data_dir).expanduser()
            if not data_path.parent.exists():
                errors.append(f"Data directory parent does not exist: {data_path.parent}")
        except Exception:
            errors.append(f"Invalid data directory path: {self.data_dir}")

        if self.templates_dir and not Path(self.templates_dir).expanduser().exists():
            errors.append(f"Templates directory does not exist: {self.templates_dir}")

        return errors

    def validate_and_raise(self) -> None:
        """Validate configuration and raise exception if invalid"""
        errors = self.validate()
        if errors:
            raise ConfigValidationError("Configuration validation failed:\n" + "\n".join(f"- {error}" for error in errors))

    def update_setting(self, key_path: str, value: Any) -> None:
        """Update a configuration setting using dot notation"""
        keys = key_path.split('.')
        obj = self

        for key in keys[:-1]:
            if not hasattr(obj, key):
                raise ConfigValidationError(f"Invalid configuration path: {key_path}")
            obj = getattr(obj, key)

        final_key = keys[-1]
        if not hasattr(obj, final_key):
            raise ConfigValidationError(f"Invalid configuration key: {final_key}")

        # Type conversion based on current value type
        current_value = getattr(obj, final_key)
        try:
            if isinstance(current_value, bool):
                if isinstance(value, str):
                    value = value.lower() in ('true', '1', 'yes', 'on')
            elif isinstance(current_value, int):
                value = int(value)
            elif isinstance(current_value, float):
                value = float(value)
        except ValueError:
            raise ConfigValidationError(f"Invalid value for {key_path}: {value}")

        setattr(obj, final_key, value)

    def get_setting(self, key_path: str) -> Any:
        """Get a configuration setting using dot notation"""
        keys = key_path.split('.')
        obj = self

        for key in keys:
            if not hasattr(obj, key):
                raise ConfigValidationError(f"Invalid configuration path: {key_path}")
            obj = getattr(obj, key)

        return obj

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path"""
        return Path(self.data_dir).expanduser()

    @property
    def templates_path(self) -> Path:
        """Get templates directory path"""
        if self.templates_dir:
            return Path(self.templates_dir).expanduser()
        return self.data_path / "templates"

    @property
    def logs_path(self) -> Path:
        """Get logs directory path"""
        return self.data_path / "logs"
