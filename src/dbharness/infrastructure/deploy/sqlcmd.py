"""
SQLCMD-mode handling for deployment scripts.

Deployment scripts generated for SQL Server projects use SQLCMD syntax:
- ``:setvar Name "value"`` defines a variable default
- ``$(Name)`` references a variable
- other ``:`` directives (``:on error exit``, ``:r file``) are tool commands

Supplied variables override ``:setvar`` defaults. Directive lines are
removed; unknown references are left as written.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping

logger = logging.getLogger(__name__)

_VARIABLE_REF = re.compile(r"\$\((\w+)\)")
_SETVAR = re.compile(r'^\s*:setvar\s+(\w+)(?:\s+(?:"((?:[^"]|"")*)"|(\S+)))?\s*$', re.IGNORECASE)
_DIRECTIVE = re.compile(r"^\s*:\w+")


def apply_sqlcmd(script: str, variables: Mapping[str, str] | None = None) -> str:
    """
    Resolve SQLCMD directives and variables in ``script``.

    Args:
        script: Script text in SQLCMD mode
        variables: Values that take precedence over ``:setvar`` defaults

    Returns:
        Plain T-SQL
    """
    supplied = dict(variables or {})
    values: dict[str, str] = {}
    lines: list[str] = []

    for line in script.splitlines():
        setvar = _SETVAR.match(line)
        if setvar:
            name = setvar.group(1)
            quoted, bare = setvar.group(2), setvar.group(3)
            values[name] = quoted.replace('""', '"') if quoted is not None else (bare or "")
            continue
        if _DIRECTIVE.match(line):
            logger.debug("Skipping SQLCMD directive: %s", line.strip())
            continue
        lines.append(line)

    values.update(supplied)

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        logger.debug("Undefined SQLCMD variable $(%s) left unchanged", name)
        return match.group(0)

    return _VARIABLE_REF.sub(substitute, "\n".join(lines))
