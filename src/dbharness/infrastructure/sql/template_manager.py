"""
Rendering of the packaged server-side SQL.

Statements the harness issues itself (create/drop/attach/detach, table
listing, purge) live in templates/*.sql beside this module. Jinja2 renders
them with two filters:
- ident: bracket-quoted identifier ([Orders])
- literal: Unicode string literal (N'C:\\data\\Orders.mdf')

Undefined variables are errors rather than empty strings.
"""

from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, TemplateNotFound

from dbharness.infrastructure.sql.connection import quote_identifier

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".sql"


def _sql_literal(value: str) -> str:
    return "N'" + str(value).replace("'", "''") + "'"


class SqlTemplateManager:
    """Renders named .sql templates from a directory."""

    def __init__(self, template_dir: Path | str = DEFAULT_TEMPLATE_DIR):
        """
        Args:
            template_dir: Directory holding <name>.sql files

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        self.template_dir = Path(template_dir)
        if not self.template_dir.is_dir():
            raise FileNotFoundError(f"SQL template directory not found: {self.template_dir}")

        # Jinja caches compiled templates per environment
        self._env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self._env.filters.update(ident=quote_identifier, literal=_sql_literal)

    def names(self) -> list[str]:
        """Available template names, without suffix."""
        return sorted(
            name[: -len(TEMPLATE_SUFFIX)]
            for name in self._env.list_templates(extensions=[TEMPLATE_SUFFIX.lstrip(".")])
        )

    def render(self, template_name: str, **context) -> str:
        """
        Render ``template_name`` with ``context``.

        Raises:
            FileNotFoundError: Unknown template
            RuntimeError: Rendering failed (e.g. a variable was not supplied)
        """
        try:
            template = self._env.get_template(template_name + TEMPLATE_SUFFIX)
        except TemplateNotFound as e:
            raise FileNotFoundError(
                f"No SQL template '{template_name}' in {self.template_dir}"
            ) from e

        try:
            sql = template.render(**context)
        except TemplateError as e:
            raise RuntimeError(f"Could not render SQL template '{template_name}': {e}") from e

        logger.debug("Rendered SQL template '%s' (%d chars)", template_name, len(sql))
        return sql.strip()


_shared: SqlTemplateManager | None = None


def get_template_manager() -> SqlTemplateManager:
    """Process-wide manager for the packaged templates."""
    global _shared
    if _shared is None:
        _shared = SqlTemplateManager()
    return _shared
