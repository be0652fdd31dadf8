"""Core data models for docintake"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple, FrozenSet, Union


class ExtractionMethodType(str, Enum):
    """Techniques for pulling a field value out of a document"""
    ZONE = "zone"
    REGEX = "regex"
    KEYWORD_PROXIMITY = "keyword_proximity"


class DecisionReason(str, Enum):
    """Why the matcher selected (or did not select) a template"""
    AUTO_SELECTED = "AutoSelected"
    AMBIGUOUS_REQUIRES_CONFIRMATION = "AmbiguousRequiresConfirmation"
    BELOW_THRESHOLD = "BelowThreshold"
    NO_TEMPLATES_CONFIGURED = "NoTemplatesConfigured"


class ProcessingStatus(str, Enum):
    """Overall outcome for one document"""
    SUCCESS = "Success"
    PARTIAL_SUCCESS = "PartialSuccess"
    FAILED = "Failed"


def _normalize_keywords(keywords) -> FrozenSet[str]:
    return frozenset(k.strip().lower() for k in (keywords or ()) if k and k.strip())


@dataclass(frozen=True)
class ZoneRect:
    """Rectangle on a page, in PDF points from the top-left corner"""
    x: float
    y: float
    width: float
    height: float
    page_number: int = 1

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def validate(self) -> List[str]:
        errors = []
        if self.width <= 0:
            errors.append("Zone width must be greater than 0")
        if self.height <= 0:
            errors.append("Zone height must be greater than 0")
        if self.page_number <= 0:
            errors.append("Zone page number must be greater than 0")
        if self.x < 0 or self.y < 0:
            errors.append("Zone coordinates cannot be negative")
        return errors


@dataclass(frozen=True)
class ExtractionMethod:
    """One step of a field's fallback chain"""
    kind: ExtractionMethodType
    priority: int = 0
    # regex
    pattern: Optional[str] = None
    group: Optional[Union[int, str]] = None
    # zone
    zone: Optional[ZoneRect] = None
    # keyword_proximity
    keywords: Tuple[str, ...] = ()
    window: Optional[int] = None
    window_unit: str = "chars"  # "chars" or "words"
    direction: str = "after"  # "after" or "around"

    def __post_init__(self):
        object.__setattr__(self, "kind", ExtractionMethodType(self.kind))
        object.__setattr__(self, "keywords", tuple(self.keywords or ()))

    def validate(self) -> List[str]:
        """Check that the method carries the parameters its kind needs"""
        errors = []

        if self.kind == ExtractionMethodType.REGEX:
            if not self.pattern:
                errors.append("Regex method requires a pattern")
            else:
                try:
                    re.compile(self.pattern)
                except re.error as e:
                    errors.append(f"Invalid regex pattern '{self.pattern}': {e}")

        elif self.kind == ExtractionMethodType.ZONE:
            if self.zone is None:
                errors.append("Zone method requires a zone rectangle")
            else:
                errors.extend(self.zone.validate())

        elif self.kind == ExtractionMethodType.KEYWORD_PROXIMITY:
            if not [k for k in self.keywords if k.strip()]:
                errors.append("Keyword proximity method requires at least one keyword")
            if self.window is not None and self.window <= 0:
                errors.append("Proximity window must be positive")
            if self.window_unit not in ("chars", "words"):
                errors.append(f"Invalid window unit '{self.window_unit}'. Must be 'chars' or 'words'")
            if self.direction not in ("after", "around"):
                errors.append(f"Invalid direction '{self.direction}'. Must be 'after' or 'around'")

        return errors


@dataclass(frozen=True)
class FieldValidation:
    """Rule an extracted raw value must satisfy"""
    pattern: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    allowed_values: Tuple[str, ...] = ()
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    case_sensitive: bool = False

    def __post_init__(self):
        object.__setattr__(self, "allowed_values", tuple(self.allowed_values or ()))


@dataclass(frozen=True)
class FieldTransformation:
    """Normalisation applied to a raw value before validation"""
    trim_whitespace: bool = True
    collapse_whitespace: bool = False
    to_lower: bool = False
    to_upper: bool = False
    remove_special_characters: bool = False
    date_format: Optional[str] = None  # strftime format for recognised dates


@dataclass(frozen=True)
class FieldRule:
    """Named extraction target within a template"""
    name: str
    methods: Tuple[ExtractionMethod, ...]
    required: bool = False
    validation: Optional[FieldValidation] = None
    transformation: Optional[FieldTransformation] = None
    allow_multiple: bool = False  # collect every distinct match instead of the first
    separator: str = ";"

    def __post_init__(self):
        object.__setattr__(self, "methods", tuple(self.methods or ()))

    def ordered_methods(self) -> List[ExtractionMethod]:
        """Methods in ascending priority; declaration order breaks ties"""
        return sorted(self.methods, key=lambda m: m.priority)

    def validate(self) -> List[str]:
        errors = []
        if not self.name or not self.name.strip():
            errors.append("Field name is required")
        if not self.methods:
            errors.append("Field must have at least one extraction method")
        for method in self.methods:
            errors.extend(method.validate())
        if self.validation and self.validation.pattern:
            try:
                re.compile(self.validation.pattern)
            except re.error as e:
                errors.append(f"Invalid validation pattern '{self.validation.pattern}': {e}")
        if self.transformation and self.transformation.to_lower and self.transformation.to_upper:
            errors.append("Transformation cannot convert to both lower and upper case")
        if self.allow_multiple and not self.separator:
            errors.append("Multi-value fields require a non-empty separator")
        return errors


@dataclass(frozen=True)
class Template:
    """Immutable description of a document class and how to extract its fields"""
    template_id: str
    name: str
    required_keywords: FrozenSet[str] = frozenset()
    optional_keywords: FrozenSet[str] = frozenset()
    minimum_confidence_threshold: float = 0.5
    auto_application_threshold: float = 0.8
    fields: Tuple[FieldRule, ...] = ()
    active: bool = True
    category: str = "General"
    tags: FrozenSet[str] = frozenset()
    catch_all: bool = False
    supported_formats: FrozenSet[str] = frozenset()
    version: str = "1.0.0"
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "required_keywords", _normalize_keywords(self.required_keywords))
        object.__setattr__(self, "optional_keywords", _normalize_keywords(self.optional_keywords))
        object.__setattr__(self, "fields", tuple(self.fields or ()))
        object.__setattr__(self, "tags", frozenset(self.tags or ()))
        object.__setattr__(self, "supported_formats", frozenset(
            (ext if ext.startswith(".") else f".{ext}").lower() for ext in (self.supported_formats or ())
        ))

    def field_rule(self, name: str) -> Optional[FieldRule]:
        for rule in self.fields:
            if rule.name == name:
                return rule
        return None

    def validate(self) -> List[str]:
        """Return a list of invariant violations; empty when the template is usable"""
        errors = []

        if not self.template_id or not str(self.template_id).strip():
            errors.append("Template id is required")
        if not self.name or not self.name.strip():
            errors.append("Template name is required")

        for name in ("minimum_confidence_threshold", "auto_application_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be between 0.0 and 1.0")
        if self.auto_application_threshold < self.minimum_confidence_threshold:
            errors.append("auto_application_threshold must be >= minimum_confidence_threshold")

        if not self.required_keywords and not self.catch_all:
            errors.append("Template must have at least one required keyword unless it is a catch-all")

        seen = set()
        for index, rule in enumerate(self.fields, 1):
            if rule.name in seen:
                errors.append(f"Duplicate field name: {rule.name}")
            seen.add(rule.name)
            for error in rule.validate():
                errors.append(f"Field {index} ({rule.name}): {error}")

        return errors

    @property
    def is_valid(self) -> bool:
        return not self.validate()


@dataclass(frozen=True)
class PositionedWord:
    """A word with its bounding box, in PDF points from the top-left corner"""
    text: str
    x0: float
    top: float
    x1: float
    bottom: float

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x0 + self.x1) / 2.0, (self.top + self.bottom) / 2.0)


@dataclass(frozen=True)
class PageLayout:
    """Positional text of one page"""
    page_number: int
    width: float
    height: float
    words: Tuple[PositionedWord, ...] = ()


@dataclass(frozen=True)
class FileMetadata:
    """Basic file system metadata of a document"""
    file_name: str
    file_size: int
    created: Optional[datetime]
    modified: Optional[datetime]
    mime_type: str
    extension: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractedDocument:
    """Text and structure produced once per document by a format strategy"""
    path: str
    text: str
    page_count: int
    metadata: FileMetadata
    encrypted: bool = False
    encryption_known: bool = True
    scanned: bool = False
    ocr_used: bool = False
    extraction_method: str = "direct"  # "direct", "ocr", "hybrid"
    warnings: Tuple[str, ...] = ()
    pages: Tuple[PageLayout, ...] = ()

    @property
    def has_layout(self) -> bool:
        return bool(self.pages)

    def page(self, page_number: int) -> Optional[PageLayout]:
        for page in self.pages:
            if page.page_number == page_number:
                return page
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "page_count": self.page_count,
            "characters": len(self.text),
            "encrypted": self.encrypted,
            "encryption_known": self.encryption_known,
            "scanned": self.scanned,
            "ocr_used": self.ocr_used,
            "extraction_method": self.extraction_method,
            "mime_type": self.metadata.mime_type,
            "file_size": self.metadata.file_size,
            "modified": self.metadata.modified.isoformat() if self.metadata.modified else None,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class DocumentValidationResult:
    """Outcome of a strategy's upfront file checks"""
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MatchCandidate:
    """A template that passed the required-keyword gate for a document"""
    template: Template
    score: float
    matched_required: int
    matched_optional: int
    matched_required_keywords: Tuple[str, ...] = ()
    matched_optional_keywords: Tuple[str, ...] = ()

    @property
    def template_id(self) -> str:
        return self.template.template_id

    @property
    def explanation(self) -> Dict[str, Any]:
        return {
            "required": list(self.matched_required_keywords),
            "optional": list(self.matched_optional_keywords),
            "optional_total": len(self.template.optional_keywords),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "template_id": self.template_id,
            "template_name": self.template.name,
            "score": round(self.score, 4),
            "matched_required": self.matched_required,
            "matched_optional": self.matched_optional,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class MatchResult:
    """Ranked candidates plus the matcher's decision"""
    candidates: Tuple[MatchCandidate, ...]
    selected_template: Optional[Template]
    decision_reason: DecisionReason
    requires_confirmation: bool = False
    excluded: Dict[str, str] = field(default_factory=dict)
    manual_override: bool = False

    @property
    def best(self) -> Optional[MatchCandidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def is_match(self) -> bool:
        return self.selected_template is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_template": self.selected_template.template_id if self.selected_template else None,
            "decision_reason": self.decision_reason.value,
            "requires_confirmation": self.requires_confirmation,
            "manual_override": self.manual_override,
            "candidates": [c.to_dict() for c in self.candidates],
            "excluded": dict(self.excluded),
        }


@dataclass(frozen=True)
class FieldExtractionResult:
    """Outcome of resolving one field rule"""
    field_name: str
    value: Optional[str]
    method: Optional[ExtractionMethodType]
    confidence: float
    validation_passed: Optional[bool] = None  # None when the rule has no validation
    error: Optional[str] = None
    required: bool = False
    attempts: Tuple[ExtractionMethodType, ...] = ()
    values: Tuple[str, ...] = ()  # individual parts of a multi-value field

    @property
    def succeeded(self) -> bool:
        return self.value is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "value": self.value,
            "method": self.method.value if self.method else None,
            "confidence": self.confidence,
            "validation_passed": self.validation_passed,
            "error": self.error,
            "required": self.required,
            "attempts": [a.value for a in self.attempts],
            "values": list(self.values),
        }


@dataclass(frozen=True)
class ResultError:
    """Structured error attached to a result instead of a raw traceback"""
    code: str
    message: str
    suggestion: Optional[str] = None
    field_name: Optional[str] = None


@dataclass(frozen=True)
class DocumentProcessingResult:
    """Everything the pipeline produced for one document"""
    document_id: str
    path: str
    status: ProcessingStatus
    extracted_document: Optional[ExtractedDocument] = None
    match_result: Optional[MatchResult] = None
    field_results: Tuple[FieldExtractionResult, ...] = ()
    confidence: float = 0.0
    errors: Tuple[ResultError, ...] = ()
    warnings: Tuple[str, ...] = ()
    elapsed: float = 0.0

    @property
    def fields(self) -> Dict[str, Optional[str]]:
        return {r.field_name: r.value for r in self.field_results}

    @property
    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors]

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.match_result and self.match_result.requires_confirmation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "path": self.path,
            "status": self.status.value,
            "confidence": round(self.confidence, 4),
            "requires_confirmation": self.requires_confirmation,
            "document": self.extracted_document.summary() if self.extracted_document else None,
            "match": self.match_result.to_dict() if self.match_result else None,
            "fields": [r.to_dict() for r in self.field_results],
            "errors": [asdict(e) for e in self.errors],
            "warnings": list(self.warnings),
            "elapsed": round(self.elapsed, 4),
        }


@dataclass(frozen=True)
class BatchResult:
    """Aggregate of a batch run"""
    total_files: int
    successful_files: int
    partial_files: int
    failed_files: int
    skipped_files: int
    results: Tuple[DocumentProcessingResult, ...]
    errors_by_document: Dict[str, List[ResultError]]
    started_at: datetime
    finished_at: datetime
    cancelled: bool = False

    @property
    def success_rate(self) -> float:
        if self.total_files == 0:
            return 0.0
        return self.successful_files / self.total_files

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def result_for(self, document_id: str) -> Optional[DocumentProcessingResult]:
        for result in self.results:
            if result.document_id == document_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "successful_files": self.successful_files,
            "partial_files": self.partial_files,
            "failed_files": self.failed_files,
            "skipped_files": self.skipped_files,
            "success_rate": round(self.success_rate, 4),
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration": round(self.duration, 4),
            "errors_by_document": {
                doc: [asdict(e) for e in errors] for doc, errors in self.errors_by_document.items()
            },
            "results": [r.to_dict() for r in self.results],
        }
