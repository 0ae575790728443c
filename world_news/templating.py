"""Jinja2 environment for world_news templates."""

from __future__ import annotations

from importlib import resources

from jinja2 import Environment, FileSystemLoader

_ENV: Environment | None = None


def _one_line(value: str | None, width: int = 0) -> str:
    """Collapse whitespace and optionally shorten to ``width`` characters."""
    if not value:
        return ""
    text = " ".join(value.split())
    if width and len(text) > width:
        return text[: width - 3].rstrip() + "..."
    return text


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        loader = FileSystemLoader(str(template_dir))
        _ENV = Environment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        _ENV.filters["one_line"] = _one_line
    return _ENV
