"""
Email templates.

HTML templates live in templates/email/ (Jinja2, one per notification kind,
all extending base.html). TemplateRenderer turns typed payloads into HTML.
"""
from templates.renderer import TemplateRenderer

__all__ = ["TemplateRenderer"]
