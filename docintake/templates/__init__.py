"""Template source and matcher"""

from docintake.templates.matcher import TemplateMatcher
from docintake.templates.store import TemplateStore, TemplateSnapshot, template_from_dict, template_to_dict

__all__ = ["TemplateMatcher", "TemplateStore", "TemplateSnapshot", "template_from_dict", "template_to_dict"]
