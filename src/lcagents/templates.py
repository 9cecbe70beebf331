"""Resource scaffold templates for LCAgents."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Dict, List
import re

DEFAULT_TEMPLATE = """# {{title}}

## Description
Describe this {{kind}} resource.

## Content
Add your content here.

## Usage
Explain how to use this resource.
"""


class TemplateError(Exception):
    """Base exception for template-related errors."""
    pass


class TemplateNotFoundError(TemplateError):
    """Raised when a template is not found."""
    pass


def title_from_name(name: str) -> str:
    """Turn ``api-review`` into ``Api Review``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), name.replace("-", " "))


class TemplateManager:
    """Loads the per-type markdown scaffolds used when creating resources."""

    def __init__(self, templates_dir: Path | None = None):
        """Initialize template manager.

        Args:
            templates_dir: Custom templates directory. If None, uses the
                templates bundled with the package.
        """
        if templates_dir is None:
            self.templates_dir = Path(__file__).parent / "data" / "resource-templates"
        else:
            self.templates_dir = templates_dir

    def list_templates(self) -> List[str]:
        """Return the resource types that have a dedicated template."""
        if not self.templates_dir.is_dir():
            return []
        return sorted(p.stem for p in self.templates_dir.glob("*.md"))

    def get_template(self, resource_type: str) -> str:
        """Get the raw template for a resource type.

        Raises:
            TemplateNotFoundError: If no template exists for the type
            TemplateError: If the template cannot be read
        """
        path = self.templates_dir / f"{resource_type}.md"
        if not path.is_file():
            raise TemplateNotFoundError(
                f"No template for '{resource_type}'. Available: {self.list_templates()}"
            )
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateError(f"Cannot read template {path}: {exc}") from exc

    def render(self, resource_type: str, name: str) -> str:
        """Render the scaffold for a new resource.

        Types without a dedicated template get a generic scaffold.
        """
        try:
            template = self.get_template(resource_type)
        except TemplateNotFoundError:
            template = DEFAULT_TEMPLATE

        values: Dict[str, str] = {
            "title": title_from_name(name),
            "name": name,
            "kind": resource_type[:-1] if resource_type.endswith("s") else resource_type,
            "date": date.today().isoformat(),
        }
        for key, value in values.items():
            template = template.replace("{{" + key + "}}", value)
        return template

    def render_enhancement(self, base: str) -> str:
        enhancement = f"{base}-enhancement"
        return (
            f"# {title_from_name(enhancement)}\n\n"
            f"This resource extends the base {base} with additional context and customizations.\n\n"
            f"## Base Resource\n"
            f"Extends: {base} (from core/org layer)\n\n"
            f"## Additional Content\n"
            f"<!-- Add your enhancements here -->\n\n"
            f"## Usage\n"
            f"Combine this enhancement with the base resource for richer context.\n"
        )
