"""Prompt templates with ``{{variable}}`` placeholders."""

import re
from typing import Any

from pydantic import BaseModel, Field

from tutor_ai.exceptions import ValidationError

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, variables: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders with values.

    Placeholders without a value are left untouched.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return _PLACEHOLDER.sub(_substitute, template)


def template_variables(template: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for name in _PLACEHOLDER.findall(template):
        seen.setdefault(name, None)
    return list(seen)


class PromptTemplate(BaseModel):
    """Named prompt with declared variables.

    Attributes:
        name: Template identifier used in logs.
        template: Text with ``{{variable}}`` placeholders.
        variables: Variables that must be supplied to ``render``.
    """

    name: str = Field(description="Template name")
    template: str = Field(description="Template text")
    variables: list[str] = Field(default_factory=list, description="Required variables")

    @classmethod
    def from_text(cls, name: str, template: str) -> "PromptTemplate":
        """Build a template whose variables are read from the text."""
        return cls(name=name, template=template, variables=template_variables(template))

    def render(self, **values: Any) -> str:
        """Render the template.

        Raises:
            ValidationError: If a declared variable is missing.
        """
        missing = [name for name in self.variables if name not in values]
        if missing:
            raise ValidationError(
                f"Prompt '{self.name}' is missing variables: {', '.join(missing)}",
                details={"template": self.name, "missing": missing},
            )
        return render_template(self.template, values)
