"""JSON template source and immutable per-batch snapshots"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from docintake.errors import TemplateSourceError
from docintake.logging_setup import get_logger
from docintake.models import (
    Template, FieldRule, ExtractionMethod, ExtractionMethodType, ZoneRect,
    FieldValidation, FieldTransformation
)


logger = get_logger(__name__)


def _method_from_dict(data: Dict[str, Any]) -> ExtractionMethod:
    zone = None
    if data.get("zone") is not None:
        z = data["zone"]
        zone = ZoneRect(
            x=float(z["x"]),
            y=float(z["y"]),
            width=float(z["width"]),
            height=float(z["height"]),
            page_number=int(z.get("page_number", z.get("page", 1))),
        )

    return ExtractionMethod(
        kind=ExtractionMethodType(data.get("kind") or data["type"]),
        priority=int(data.get("priority", 0)),
        pattern=data.get("pattern"),
        group=data.get("group"),
        zone=zone,
        keywords=tuple(data.get("keywords", ())),
        window=data.get("window"),
        window_unit=data.get("window_unit", "chars"),
        direction=data.get("direction", "after"),
    )


def _field_from_dict(data: Dict[str, Any]) -> FieldRule:
    validation = None
    if data.get("validation"):
        v = data["validation"]
        validation = FieldValidation(
            pattern=v.get("pattern"),
            min_value=v.get("min_value"),
            max_value=v.get("max_value"),
            allowed_values=tuple(v.get("allowed_values", ())),
            min_length=v.get("min_length"),
            max_length=v.get("max_length"),
            case_sensitive=bool(v.get("case_sensitive", False)),
        )

    transformation = None
    if data.get("transformation"):
        transformation = FieldTransformation(**data["transformation"])

    return FieldRule(
        name=data["name"],
        methods=tuple(_method_from_dict(m) for m in data.get("methods", ())),
        required=bool(data.get("required", False)),
        validation=validation,
        transformation=transformation,
        allow_multiple=bool(data.get("allow_multiple", False)),
        separator=str(data.get("separator", ";")),
    )


def template_from_dict(data: Dict[str, Any]) -> Template:
    """
    Build a Template from its JSON representation

    Raises:
        KeyError, ValueError, TypeError: If the data is malformed
    """
    return Template(
        template_id=str(data.get("template_id") or data["id"]),
        name=data["name"],
        required_keywords=data.get("required_keywords", ()),
        optional_keywords=data.get("optional_keywords", ()),
        minimum_confidence_threshold=float(data.get("minimum_confidence_threshold", 0.5)),
        auto_application_threshold=float(data.get("auto_application_threshold", 0.8)),
        fields=tuple(_field_from_dict(f) for f in data.get("fields", ())),
        active=bool(data.get("active", True)),
        category=data.get("category", "General"),
        tags=data.get("tags", ()),
        catch_all=bool(data.get("catch_all", False)),
        supported_formats=data.get("supported_formats", ()),
        version=str(data.get("version", "1.0.0")),
        description=data.get("description"),
    )


def _method_to_dict(method: ExtractionMethod) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": method.kind.value, "priority": method.priority}
    if method.kind == ExtractionMethodType.REGEX:
        data["pattern"] = method.pattern
        if method.group is not None:
            data["group"] = method.group
    elif method.kind == ExtractionMethodType.ZONE and method.zone:
        data["zone"] = {
            "page_number": method.zone.page_number,
            "x": method.zone.x,
            "y": method.zone.y,
            "width": method.zone.width,
            "height": method.zone.height,
        }
    elif method.kind == ExtractionMethodType.KEYWORD_PROXIMITY:
        data["keywords"] = list(method.keywords)
        if method.window is not None:
            data["window"] = method.window
        data["window_unit"] = method.window_unit
        data["direction"] = method.direction
    return data


def template_to_dict(template: Template) -> Dict[str, Any]:
    """Serialize a Template to a JSON-ready dictionary"""
    fields = []
    for rule in template.fields:
        entry: Dict[str, Any] = {
            "name": rule.name,
            "required": rule.required,
            "methods": [_method_to_dict(m) for m in rule.methods],
        }
        if rule.allow_multiple:
            entry["allow_multiple"] = True
            entry["separator"] = rule.separator
        if rule.validation:
            entry["validation"] = {
                k: (list(v) if isinstance(v, tuple) else v)
                for k, v in rule.validation.__dict__.items()
                if v is not None and v != () and v is not False
            }
        if rule.transformation:
            entry["transformation"] = dict(rule.transformation.__dict__)
        fields.append(entry)

    return {
        "id": template.template_id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "tags": sorted(template.tags),
        "version": template.version,
        "active": template.active,
        "catch_all": template.catch_all,
        "required_keywords": sorted(template.required_keywords),
        "optional_keywords": sorted(template.optional_keywords),
        "minimum_confidence_threshold": template.minimum_confidence_threshold,
        "auto_application_threshold": template.auto_application_threshold,
        "supported_formats": sorted(template.supported_formats),
        "fields": fields,
    }


@dataclass(frozen=True)
class TemplateSnapshot:
    """Templates frozen for the duration of one batch run"""
    templates: Tuple[Template, ...]
    taken_at: datetime = field(default_factory=datetime.now)

    @property
    def active_templates(self) -> Tuple[Template, ...]:
        return tuple(t for t in self.templates if t.active)

    def get(self, template_id: str) -> Optional[Template]:
        for template in self.templates:
            if template.template_id == template_id:
                return template
        return None

    def __len__(self) -> int:
        return len(self.templates)


class TemplateStore:
    """
    Loads templates from a directory of JSON files.

    Each file holds one template object or a list of them. Files that fail
    to parse or validate are skipped and reported in ``load_errors``; an
    unreadable directory raises TemplateSourceError.
    """

    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir).expanduser()
        self.logger = get_logger(f"{__name__}.TemplateStore")
        self.load_errors: Dict[str, List[str]] = {}
        self._templates: Dict[str, Template] = {}
        self._lock = threading.Lock()

    def load(self) -> List[Template]:
        """
        Read every *.json file in the templates directory

        Returns:
            Valid templates sorted by id

        Raises:
            TemplateSourceError: If the directory is missing or cannot be listed
        """
        if not self.templates_dir.is_dir():
            raise TemplateSourceError(
                str(self.templates_dir),
                message=f"Templates directory does not exist: {self.templates_dir}"
            )

        try:
            files = sorted(self.templates_dir.glob("*.json"))
        except OSError as e:
            raise TemplateSourceError(str(self.templates_dir), e)

        templates: Dict[str, Template] = {}
        load_errors: Dict[str, List[str]] = {}

        for path in files:
            try:
                loaded = load_template_file(path)
            except TemplateSourceError as e:
                self.logger.error(f"Skipping template file {path.name}: {e.message}")
                load_errors[path.name] = [e.message]
                continue

            for template in loaded:
                errors = template.validate()
                if errors:
                    self.logger.error(f"Skipping invalid template '{template.template_id}' in {path.name}: {errors}")
                    load_errors.setdefault(path.name, []).extend(errors)
                    continue
                if template.template_id in templates:
                    self.logger.warning(f"Duplicate template id '{template.template_id}' in {path.name}; later file wins")
                templates[template.template_id] = template

        with self._lock:
            self._templates = templates
            self.load_errors = load_errors

        self.logger.info(f"Loaded {len(templates)} templates from {self.templates_dir}")
        return [templates[k] for k in sorted(templates)]

    def templates(self) -> List[Template]:
        with self._lock:
            return [self._templates[k] for k in sorted(self._templates)]

    def get(self, template_id: str) -> Optional[Template]:
        with self._lock:
            return self._templates.get(template_id)

    def save(self, template: Template) -> Path:
        """Write a template to <templates_dir>/<id>.json, replacing the previous version"""
        errors = template.validate()
        if errors:
            raise ValueError(f"Invalid template '{template.template_id}': {'; '.join(errors)}")

        self.templates_dir.mkdir(parents=True, exist_ok=True)
        path = self.templates_dir / f"{template.template_id}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(template_to_dict(template), f, indent=2, ensure_ascii=False)

        with self._lock:
            self._templates = {**self._templates, template.template_id: template}
        self.logger.info(f"Saved template '{template.template_id}' to {path}")
        return path

    def snapshot(self) -> TemplateSnapshot:
        """Load from disk and freeze the result for one run"""
        return TemplateSnapshot(tuple(self.load()))


def load_template_file(path: Path) -> List[Template]:
    """
    Parse one JSON file holding a template or a list of templates

    Raises:
        TemplateSourceError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TemplateSourceError(str(path), e, message=f"Cannot read template file {path}: {e}")

    entries = data if isinstance(data, list) else [data]
    templates = []
    for entry in entries:
        try:
            templates.append(template_from_dict(entry))
        except (KeyError, ValueError, TypeError) as e:
            raise TemplateSourceError(str(path), e, message=f"Malformed template in {path}: {e!r}")
    return templates
