"""Template matching: keyword scoring and selection policy"""

from typing import Dict, List, Optional, Sequence

from ..config import MatchingConfig
from ..logging_setup import get_logger
from ..models import Template, MatchCandidate, MatchResult, DecisionReason


# Float slack when comparing scores against thresholds and the minimum gap
SCORE_EPSILON = 1e-9


class TemplateMatcher:
    """Scores templates against document text and picks a winner"""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()
        self.logger = get_logger(f"{__name__}.TemplateMatcher")

    def match(self, text: str, templates: Sequence[Template],
              file_extension: Optional[str] = None) -> MatchResult:
        """
        Rank all active templates for a document and apply the decision policy

        Args:
            text: Extracted document text
            templates: Template snapshot to match against
            file_extension: Document extension, checked against each
                template's supported formats when given

        Returns:
            MatchResult with candidates in descending order
        """
        active = [t for t in templates if t.active]
        if not active:
            self.logger.debug("No active templates configured")
            return MatchResult(
                candidates=(),
                selected_template=None,
                decision_reason=DecisionReason.NO_TEMPLATES_CONFIGURED,
            )

        normalized_text = (text or "").lower()
        extension = file_extension.lower() if file_extension else None
        candidates: List[MatchCandidate] = []
        excluded: Dict[str, str] = {}

        for template in active:
            if extension and template.supported_formats and extension not in template.supported_formats:
                excluded[template.template_id] = f"format {extension} not supported"
                continue

            candidate = self.score_template(normalized_text, template)
            if candidate is None:
                missing = sorted(k for k in template.required_keywords if k not in normalized_text)
                excluded[template.template_id] = f"missing required keywords: {', '.join(missing)}"
                continue

            if candidate.score < template.minimum_confidence_threshold - SCORE_EPSILON:
                excluded[template.template_id] = (
                    f"score {candidate.score:.2f} below threshold {template.minimum_confidence_threshold:.2f}"
                )
                continue

            candidates.append(candidate)

        for template_id, reason in sorted(excluded.items()):
            self.logger.debug(f"Template '{template_id}' excluded: {reason}")

        candidates.sort(key=lambda c: (-c.score, -c.matched_required, -c.matched_optional, c.template_id))

        if not candidates:
            return MatchResult(
                candidates=(),
                selected_template=None,
                decision_reason=DecisionReason.BELOW_THRESHOLD,
                excluded=excluded,
            )

        top = candidates[0]
        if len(candidates) == 1 or top.score - candidates[1].score >= self.config.minimum_gap - SCORE_EPSILON:
            requires_confirmation = top.score < top.template.auto_application_threshold - SCORE_EPSILON
            self.logger.debug(
                f"Selected template '{top.template_id}' with score {top.score:.2f}"
                + (" (confirmation required)" if requires_confirmation else "")
            )
            return MatchResult(
                candidates=tuple(candidates),
                selected_template=top.template,
                decision_reason=DecisionReason.AUTO_SELECTED,
                requires_confirmation=requires_confirmation,
                excluded=excluded,
            )

        self.logger.debug(
            f"Ambiguous match: '{top.template_id}' ({top.score:.2f}) vs "
            f"'{candidates[1].template_id}' ({candidates[1].score:.2f})"
        )
        return MatchResult(
            candidates=tuple(candidates),
            selected_template=top.template,
            decision_reason=DecisionReason.AMBIGUOUS_REQUIRES_CONFIRMATION,
            requires_confirmation=True,
            excluded=excluded,
        )

    def score_template(self, normalized_text: str, template: Template) -> Optional[MatchCandidate]:
        """
        Score one template against lower-cased document text

        Returns:
            MatchCandidate, or None when a required keyword is missing
        """
        matched_required = sorted(k for k in template.required_keywords if k in normalized_text)
        if len(matched_required) != len(template.required_keywords):
            return None

        matched_optional = sorted(k for k in template.optional_keywords if k in normalized_text)
        fraction = len(matched_optional) / max(1, len(template.optional_keywords))
        score = self.config.base_weight + self.config.optional_weight * fraction
        score = min(1.0, max(0.0, score))

        return MatchCandidate(
            template=template,
            score=score,
            matched_required=len(matched_required),
            matched_optional=len(matched_optional),
            matched_required_keywords=tuple(matched_required),
            matched_optional_keywords=tuple(matched_optional),
        )

    def match_with_override(self, text: str, templates: Sequence[Template], template_id: str,
                            file_extension: Optional[str] = None) -> MatchResult:
        """
        Force a template chosen by a user while still reporting the automatic ranking

        The decision reason reflects the automatic ranking; ``manual_override``
        marks the forced selection.

        Raises:
            ValueError: If no template has the given id
        """
        forced = next((t for t in templates if t.template_id == template_id), None)
        if forced is None:
            raise ValueError(f"Unknown template id: {template_id}")

        automatic = self.match(text, templates, file_extension)
        self.logger.info(f"Template '{template_id}' assigned manually")
        return MatchResult(
            candidates=automatic.candidates,
            selected_template=forced,
            decision_reason=automatic.decision_reason,
            requires_confirmation=False,
            excluded=automatic.excluded,
            manual_override=True,
        )
