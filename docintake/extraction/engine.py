"""Field extraction engine: ordered fallback chains of extraction methods"""

import re
from typing import Callable, List, Optional, Sequence

from ..config import ExtractionConfig
from ..errors import FieldExtractionError
from ..logging_setup import get_logger
from ..models import (
    ExtractedDocument, Template, FieldRule, ExtractionMethod, ExtractionMethodType,
    FieldExtractionResult, PositionedWord, ProcessingStatus
)
from .validation import apply_transformation, validate_value


MethodAttemptHook = Callable[[FieldRule, ExtractionMethod], None]

# Separators stripped between a keyword and its value, e.g. "Severity: High", "ID # 42"
LEADING_SEPARATORS = re.compile(r"^[\s:#\-=\u2013\u2014]+")
TRAILING_SEPARATORS = re.compile(r"[\s:#\-=\u2013\u2014]+$")


class FieldExtractionEngine:
    """Resolves each field rule of a template against an extracted document"""

    def __init__(self, config: Optional[ExtractionConfig] = None,
                 on_method_attempt: Optional[MethodAttemptHook] = None):
        """
        Args:
            config: Extraction configuration. If None, uses defaults.
            on_method_attempt: Called with (field rule, method) before each
                method is tried
        """
        self.config = config or ExtractionConfig()
        self.on_method_attempt = on_method_attempt
        self.logger = get_logger(f"{__name__}.FieldExtractionEngine")

    def extract_fields(self, document: ExtractedDocument, template: Template) -> List[FieldExtractionResult]:
        """Extract every field of the template, one result per rule in template order"""
        results = [self.extract_field(document, rule) for rule in template.fields]
        succeeded = sum(1 for r in results if r.succeeded)
        self.logger.debug(
            f"Extracted {succeeded}/{len(results)} fields from {document.path} "
            f"with template '{template.template_id}'"
        )
        return results

    def extract_field(self, document: ExtractedDocument, rule: FieldRule) -> FieldExtractionResult:
        """
        Try the rule's methods in priority order until one yields a valid value

        Multi-value rules keep every distinct valid match of the winning
        method, joined with the rule's separator; parts failing validation
        are dropped.

        Returns:
            FieldExtractionResult; value is None when every method was exhausted
        """
        attempts = []
        validation_failed = False

        for method in rule.ordered_methods():
            if self.on_method_attempt is not None:
                self.on_method_attempt(rule, method)
            attempts.append(method.kind)

            values: List[str] = []
            for raw in self._run_method(document, method, rule.allow_multiple):
                value = apply_transformation(raw, rule.transformation)
                if not value or value in values:
                    continue

                errors = validate_value(value, rule.validation)
                if errors:
                    validation_failed = True
                    self.logger.debug(f"Field '{rule.name}' {method.kind.value} value rejected: {'; '.join(errors)}")
                    continue
                values.append(value)

            if not values:
                continue

            has_validation = rule.validation is not None
            return FieldExtractionResult(
                field_name=rule.name,
                value=rule.separator.join(values) if rule.allow_multiple else values[0],
                method=method.kind,
                confidence=(self.config.validated_confidence if has_validation
                            else self.config.unvalidated_confidence),
                validation_passed=True if has_validation else None,
                required=rule.required,
                attempts=tuple(attempts),
                values=tuple(values),
            )

        error = FieldExtractionError(rule.name, [kind.value for kind in attempts])
        log = self.logger.warning if rule.required else self.logger.debug
        log(error.message)

        return FieldExtractionResult(
            field_name=rule.name,
            value=None,
            method=None,
            confidence=0.0,
            validation_passed=False if validation_failed else None,
            error=error.error_code,
            required=rule.required,
            attempts=tuple(attempts),
        )

    def _run_method(self, document: ExtractedDocument, method: ExtractionMethod,
                    multiple: bool = False) -> List[str]:
        """Raw candidate values in document order; at most one unless multiple"""
        if method.kind == ExtractionMethodType.REGEX:
            return self._extract_regex(document.text, method, multiple)
        if method.kind == ExtractionMethodType.ZONE:
            value = self._extract_zone(document, method)
            return [value] if value is not None else []
        if method.kind == ExtractionMethodType.KEYWORD_PROXIMITY:
            return self._extract_keyword_proximity(document.text, method, multiple)
        return []

    def _extract_regex(self, text: str, method: ExtractionMethod, multiple: bool = False) -> List[str]:
        flags = re.MULTILINE if self.config.case_sensitive_patterns else re.MULTILINE | re.IGNORECASE
        try:
            pattern = re.compile(method.pattern, flags)
        except re.error as e:
            self.logger.warning(f"Invalid regex pattern '{method.pattern}': {e}")
            return []

        values = []
        for match in pattern.finditer(text):
            try:
                if method.group is not None:
                    value = match.group(method.group)
                elif pattern.groups >= 1:
                    value = match.group(1)
                else:
                    value = match.group(0)
            except IndexError:
                self.logger.warning(f"Regex pattern '{method.pattern}' has no group {method.group!r}")
                return []

            if value and value.strip():
                values.append(value)
                if not multiple:
                    break
        return values

    def _extract_zone(self, document: ExtractedDocument, method: ExtractionMethod) -> Optional[str]:
        if not document.has_layout:
            self.logger.debug(f"Zone extraction skipped for {document.path}: no positional text")
            return None

        zone = method.zone
        page = document.page(zone.page_number)
        if page is None:
            return None

        words = [w for w in page.words if zone.contains(*w.center)]
        if not words:
            return None
        return " ".join(" ".join(w.text for w in line) for line in _reading_order(words))

    def _extract_keyword_proximity(self, text: str, method: ExtractionMethod,
                                   multiple: bool = False) -> List[str]:
        lowered = text.lower()
        window = method.window or self.config.default_window

        if not multiple:
            # First keyword, in configured order, that occurs anywhere
            for keyword in method.keywords:
                needle = keyword.strip().lower()
                start = lowered.find(needle) if needle else -1
                if start >= 0:
                    return [self._proximity_value(text, start, start + len(needle), method, window)]
            return []

        hits = []
        for keyword in method.keywords:
            needle = keyword.strip().lower()
            if not needle:
                continue
            start = lowered.find(needle)
            while start >= 0:
                hits.append((start, start + len(needle)))
                start = lowered.find(needle, start + len(needle))
        return [self._proximity_value(text, start, end, method, window) for start, end in sorted(hits)]

    @staticmethod
    def _proximity_value(text: str, start: int, end: int, method: ExtractionMethod, window: int) -> str:
        after = _first_line(LEADING_SEPARATORS.sub("", text[end:]))

        if method.window_unit == "words":
            after_value = " ".join(after.split()[:window])
        else:
            after_value = after[:window]

        if method.direction == "around":
            before = TRAILING_SEPARATORS.sub("", text[:start].rsplit("\n", 1)[-1])
            if method.window_unit == "words":
                before_value = " ".join(before.split()[-window:])
            else:
                before_value = before[-window:]
            return f"{before_value} {after_value}".strip()

        return after_value

    @staticmethod
    def aggregate_confidence(results: Sequence[FieldExtractionResult]) -> float:
        """Mean of the per-field confidence contributions, 0.0 without fields"""
        if not results:
            return 0.0
        return sum(r.confidence for r in results) / len(results)

    @staticmethod
    def compute_status(results: Sequence[FieldExtractionResult]) -> ProcessingStatus:
        """
        Overall status from field outcomes

        SUCCESS when every required field was extracted, PARTIAL_SUCCESS when
        a required field failed but another field succeeded, FAILED when
        nothing succeeded and at least one field was required.
        """
        failed_required = [r for r in results if r.required and not r.succeeded]
        if not failed_required:
            return ProcessingStatus.SUCCESS
        if any(r.succeeded for r in results):
            return ProcessingStatus.PARTIAL_SUCCESS
        return ProcessingStatus.FAILED


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].split("\r", 1)[0]


def _reading_order(words: List[PositionedWord]) -> List[List[PositionedWord]]:
    """Group words into lines top to bottom, each line left to right"""
    lines: List[List[PositionedWord]] = []
    for word in sorted(words, key=lambda w: (w.top, w.x0)):
        if lines:
            line = lines[-1]
            tolerance = max(1.0, (line[0].bottom - line[0].top) / 2.0)
            if abs(word.top - line[0].top) <= tolerance:
                line.append(word)
                continue
        lines.append([word])
    return [sorted(line, key=lambda w: w.x0) for line in lines]
