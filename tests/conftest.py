"""Pytest configuration and fixtures"""

import json
import pytest
import tempfile
import shutil
from pathlib import Path

from docintake.config import (
    IntakeConfig, MatchingConfig, ExtractionConfig, ProcessingConfig, OCRConfig, LoggingConfig
)
from docintake.models import Template, FieldRule, ExtractionMethod, FieldValidation, ZoneRect
from docintake.templates.store import template_to_dict


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def test_config(temp_dir):
    """Configuration pointing at the temporary directory, file logging disabled"""
    return IntakeConfig(
        matching=MatchingConfig(),
        extraction=ExtractionConfig(),
        processing=ProcessingConfig(max_concurrent=3),
        ocr=OCRConfig(),
        logging=LoggingConfig(file_enabled=False, console_enabled=False),
        data_dir=str(temp_dir / "data"),
        templates_dir=str(temp_dir / "templates"),
    )


@pytest.fixture
def incident_template():
    """Incident report template with a required id field and an optional severity"""
    return Template(
        template_id="incident-report",
        name="Incident Report",
        required_keywords={"incident"},
        optional_keywords={"threat", "analysis"},
        minimum_confidence_threshold=0.5,
        auto_application_threshold=0.8,
        category="Security",
        fields=(
            FieldRule(
                name="incident_id",
                required=True,
                methods=(
                    ExtractionMethod(kind="regex", priority=1, pattern=r"Incident ID:\s*([A-Z0-9-]+)"),
                    ExtractionMethod(kind="zone", priority=2,
                                     zone=ZoneRect(x=0, y=0, width=200, height=40, page_number=1)),
                ),
                validation=FieldValidation(pattern=r"[A-Z]{3}-\d{4}-\d{3}"),
            ),
            FieldRule(
                name="severity",
                methods=(
                    ExtractionMethod(kind="keyword_proximity", priority=1, keywords=("Severity",), window=20),
                ),
            ),
        ),
    )


@pytest.fixture
def malware_template():
    """Malware analysis template"""
    return Template(
        template_id="malware-analysis",
        name="Malware Analysis",
        required_keywords={"malware"},
        optional_keywords={"hash", "sample", "family", "c2"},
        minimum_confidence_threshold=0.5,
        auto_application_threshold=0.9,
        fields=(
            FieldRule(
                name="sha256",
                required=True,
                methods=(ExtractionMethod(kind="regex", pattern=r"\b[a-f0-9]{64}\b"),),
            ),
        ),
    )


@pytest.fixture
def templates_dir(temp_dir, incident_template, malware_template):
    """Directory with the sample templates written as JSON files"""
    path = temp_dir / "templates"
    path.mkdir()
    for template in (incident_template, malware_template):
        with open(path / f"{template.template_id}.json", "w", encoding="utf-8") as f:
            json.dump(template_to_dict(template), f, indent=2)
    return path


@pytest.fixture
def incident_text():
    """Text of a well-formed incident report"""
    return (
        "Security Incident Report\n"
        "Incident ID: SEC-2025-001\n"
        "Severity: High\n"
        "Threat actor activity observed on three hosts.\n"
    )


@pytest.fixture
def write_document(temp_dir):
    """Factory writing a text document into the temporary directory"""
    def _write(name: str, content: str) -> Path:
        path = temp_dir / "docs" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write
