"""Unit tests for the single-document pipeline"""

import pytest
from unittest.mock import Mock

from docintake.errors import FileAccessError
from docintake.models import DecisionReason, ProcessingStatus
from docintake.pipeline.document import DocumentPipeline, CancellationToken, result_error_from


class TestDocumentPipeline:
    """Test read, match and extract end to end on text documents"""

    def test_success(self, test_config, incident_template, malware_template, incident_text, write_document):
        """Test a well-formed report yields every field"""
        path = write_document("incident.txt", incident_text)
        pipeline = DocumentPipeline.from_config(test_config)

        result = pipeline.process(str(path), [incident_template, malware_template])

        assert result.status == ProcessingStatus.SUCCESS
        assert result.document_id == str(path)
        assert result.fields == {"incident_id": "SEC-2025-001", "severity": "High"}
        assert result.match_result.decision_reason == DecisionReason.AUTO_SELECTED
        assert result.match_result.selected_template is incident_template
        assert result.confidence == pytest.approx(0.9)
        assert result.errors == ()
        assert not result.requires_confirmation
        assert result.elapsed >= 0.0

    def test_partial_success(self, test_config, incident_template, write_document):
        """Test a missing required field with another field extracted"""
        path = write_document("summary.txt", "Incident summary\nSeverity: Low\n")

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template])

        assert result.status == ProcessingStatus.PARTIAL_SUCCESS
        assert result.fields == {"incident_id": None, "severity": "Low"}
        assert result.error_codes == ["NO_EXTRACTION_METHOD_SUCCEEDED"]
        assert result.errors[0].field_name == "incident_id"
        assert result.requires_confirmation
        assert any("requires confirmation" in w for w in result.warnings)

    def test_required_field_missing(self, test_config, malware_template, write_document):
        path = write_document("malware.txt", "Malware sample without a digest")

        result = DocumentPipeline.from_config(test_config).process(str(path), [malware_template])

        assert result.status == ProcessingStatus.FAILED
        assert result.error_codes == ["NO_EXTRACTION_METHOD_SUCCEEDED"]

    def test_no_templates(self, test_config, incident_text, write_document):
        """Test zero active templates fails the document"""
        path = write_document("incident.txt", incident_text)

        result = DocumentPipeline.from_config(test_config).process(str(path), [])

        assert result.status == ProcessingStatus.FAILED
        assert result.match_result.decision_reason == DecisionReason.NO_TEMPLATES_CONFIGURED
        assert result.error_codes == ["NO_TEMPLATE_MATCH"]
        assert "NoTemplatesConfigured" in result.errors[0].message
        assert result.extracted_document is not None

    def test_no_matching_template(self, test_config, malware_template, incident_text, write_document):
        path = write_document("incident.txt", incident_text)

        result = DocumentPipeline.from_config(test_config).process(str(path), [malware_template])

        assert result.status == ProcessingStatus.FAILED
        assert result.match_result.decision_reason == DecisionReason.BELOW_THRESHOLD
        assert result.error_codes == ["NO_TEMPLATE_MATCH"]

    def test_missing_file(self, test_config, incident_template, temp_dir):
        result = DocumentPipeline.from_config(test_config).process(
            str(temp_dir / "missing.txt"), [incident_template]
        )

        assert result.status == ProcessingStatus.FAILED
        assert result.error_codes == ["FILE_ACCESS_ERROR"]
        assert result.extracted_document is None
        assert result.errors[0].suggestion

    def test_unsupported_format(self, test_config, incident_template, write_document):
        path = write_document("archive.xyz", "incident")

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template])

        assert result.error_codes == ["UNSUPPORTED_FORMAT"]

    def test_empty_pdf_is_corrupt(self, test_config, incident_template, temp_dir):
        path = temp_dir / "empty.pdf"
        path.write_bytes(b"")

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template])

        assert result.error_codes == ["CORRUPT_DOCUMENT"]

    def test_renamed_pdf_is_corrupt(self, test_config, incident_template, write_document):
        """Test a text file named .pdf is reported as corrupt, not unsupported"""
        path = write_document("report.pdf", "Incident ID: SEC-2025-001")

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template])

        assert result.error_codes == ["CORRUPT_DOCUMENT"]
        assert "File signature does not match the pdf format" in result.errors[0].message

    def test_empty_text_file(self, test_config, incident_template, write_document):
        path = write_document("empty.txt", "")

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template])

        assert result.error_codes == ["NO_TEMPLATE_MATCH"]
        assert "File is empty" in result.warnings

    def test_cancelled_before_matching(self, test_config, incident_template, incident_text, write_document):
        path = write_document("incident.txt", incident_text)
        token = CancellationToken()
        token.cancel()

        result = DocumentPipeline.from_config(test_config).process(str(path), [incident_template], token)

        assert result.status == ProcessingStatus.FAILED
        assert result.error_codes == ["BATCH_CANCELLED"]
        assert result.match_result is None

    def test_template_override(self, test_config, incident_template, malware_template,
                               incident_text, write_document):
        path = write_document("incident.txt", incident_text)
        pipeline = DocumentPipeline.from_config(test_config)

        result = pipeline.process(str(path), [incident_template, malware_template],
                                  template_id="malware-analysis")

        assert result.match_result.manual_override
        assert result.match_result.selected_template is malware_template
        assert list(result.fields) == ["sha256"]

    def test_unknown_template_override(self, test_config, incident_template, incident_text, write_document):
        path = write_document("incident.txt", incident_text)

        result = DocumentPipeline.from_config(test_config).process(
            str(path), [incident_template], template_id="nope"
        )

        assert result.error_codes == ["NO_TEMPLATE_MATCH"]
        assert "Unknown template id" in result.errors[0].message

    def test_unexpected_error_recorded(self, test_config, incident_template, incident_text, write_document):
        """Test errors raised by collaborators never escape"""
        path = write_document("incident.txt", incident_text)
        pipeline = DocumentPipeline.from_config(test_config)
        pipeline.matcher = Mock()
        pipeline.matcher.match.side_effect = RuntimeError("boom")

        result = pipeline.process(str(path), [incident_template], document_id="doc-1")

        assert result.document_id == "doc-1"
        assert result.status == ProcessingStatus.FAILED
        assert result.error_codes == ["INTERNAL_ERROR"]

    def test_read(self, test_config, incident_text, write_document):
        path = write_document("incident.txt", incident_text)
        document = DocumentPipeline.from_config(test_config).read(str(path))

        assert document.text == incident_text
        assert document.metadata.file_name == "incident.txt"


class TestResultErrors:
    """Test conversion of exceptions into result errors"""

    def test_docintake_error(self):
        error = result_error_from(FileAccessError("a.pdf"))
        assert error.code == "FILE_ACCESS_ERROR"
        assert "a.pdf" in error.message
        assert error.suggestion

    def test_unexpected_error(self):
        error = result_error_from(KeyError("x"))
        assert error.code == "INTERNAL_ERROR"
