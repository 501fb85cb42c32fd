"""Jinja2 prompt templates for the reasoning loop and draft generation."""

import re
from datetime import date
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = Path(__file__).parent / "templates"

_TITLE_PREFIX = re.compile(r"^title:?\s*", re.IGNORECASE)
_SUMMARY_PREFIX = re.compile(r"^summary:?\s*", re.IGNORECASE)


class TemplateLoader:
    """Loads and renders Jinja2 templates for LLM prompts."""

    def __init__(self, templates_dir: Path = TEMPLATES_DIR):
        """Initialize template loader.

        Args:
            templates_dir: Directory containing .jinja2 template files
        """
        self.templates_dir = templates_dir
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, **context) -> str:
        """Render a template with context variables.

        Raises:
            jinja2.TemplateNotFound: If template doesn't exist
        """
        template = self.env.get_template(template_name)
        return template.render(**context)


_loader = TemplateLoader()


def render_system_prompt(*, today: date, buttons: bool = True) -> str:
    """System prompt for the reasoning loop."""
    return _loader.render("system_prompt.jinja2", today=today.isoformat(), buttons=buttons)


def render_title_summary_prompt(content: str) -> str:
    """Prompt asking for a title line and a summary line."""
    return _loader.render("title_summary.jinja2", content=content)


def parse_title_summary(text: str, content: str) -> tuple[str, str]:
    """Split a two-line model reply into (title, summary).

    Missing lines fall back to "Untitled" and the start of the content.
    """
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    title = _TITLE_PREFIX.sub("", lines[0])[:100] if lines else ""
    summary = _SUMMARY_PREFIX.sub("", lines[1])[:200] if len(lines) > 1 else ""
    return title or "Untitled", summary or content[:150]
