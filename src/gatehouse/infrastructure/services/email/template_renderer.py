"""Jinja2 rendering for notification templates.

Uses a sandboxed environment so template text cannot execute code.
"""

from jinja2 import TemplateSyntaxError, UndefinedError
from jinja2.sandbox import SandboxedEnvironment

from gatehouse.core.logging import get_logger

logger = get_logger(__name__)


class TemplateRenderer:
    """Jinja2 renderer with autoescaping."""

    def __init__(self) -> None:
        self.env = SandboxedEnvironment(
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_string: str, variables: dict[str, object]) -> str:
        """Render a template string.

        Raises:
            TemplateSyntaxError: If template syntax is invalid.
            UndefinedError: If a variable used as an object is missing.
        """
        try:
            return self.env.from_string(template_string).render(**variables)
        except TemplateSyntaxError as e:
            logger.error("Template syntax error", error=str(e), line=e.lineno)
            raise
        except UndefinedError as e:
            logger.error("Undefined variable in template", error=str(e))
            raise
