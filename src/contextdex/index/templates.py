"""In-process extraction of template files.

A template becomes a single ``template`` entity whose lexical text carries
the component tags, bound variables and call-like references found in it,
so that a query for any of them lands on the file.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import PurePosixPath

from contextdex.config.constants import (
    TEMPLATE_CALL_STOPLIST,
    TEMPLATE_MARKER,
    TEMPLATE_RAW_TEXT_CHARS,
)
from contextdex.index.models import Entity, EntityKind
from contextdex.index.naming import container_from_path

_COMPONENT = re.compile(r"<\.([a-z_][a-z0-9_]*)")
_ASSIGN = re.compile(r"@([a-z_][a-z0-9_]*)")
_QUALIFIED_CALL = re.compile(r"([A-Z][a-zA-Z0-9]*(?:\.[A-Z][a-zA-Z0-9]*)*)\.([a-z_][a-z0-9_]*)\(")
_BARE_CALL = re.compile(r"\b([a-z_][a-z0-9_]*)\(")


def _distinct(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def extract_components(content: str) -> list[str]:
    return _distinct(_COMPONENT.findall(content))


def extract_assigns(content: str) -> list[str]:
    return _distinct(_ASSIGN.findall(content))


def extract_calls(content: str) -> list[str]:
    """Qualified ``Mod.fun(`` references first, then bare ``fun(`` calls."""
    calls = [f"{mod}.{fun}" for mod, fun in _QUALIFIED_CALL.findall(content)]
    calls.extend(name for name in _BARE_CALL.findall(content) if name not in TEMPLATE_CALL_STOPLIST)
    return _distinct(calls)


def build_template_entity(
    path: str,
    content: str,
    source_dirs: Sequence[str] = ("lib",),
    extensions: Sequence[str] = (".heex",),
) -> Entity:
    """Build the entity for one template file.

    Args:
        path: Project-relative POSIX path of the template.
        content: Template source.
        source_dirs: Directories whose layout maps to container names.
        extensions: Template extensions, used for naming.
    """
    container = container_from_path(path, source_dirs, extensions, default="Template")
    components = extract_components(content)
    assigns = extract_assigns(content)
    calls = extract_calls(content)
    extension_token = PurePosixPath(path).suffix.lstrip(".")

    lexical_parts = [container, TEMPLATE_MARKER, extension_token, *components, *assigns, *calls]

    return Entity(
        container=container,
        name=TEMPLATE_MARKER,
        arity=0,
        kind=EntityKind.TEMPLATE,
        path=path,
        start_line=1,
        end_line=max(1, len(content.splitlines())),
        signature=TEMPLATE_MARKER,
        doc=f"Template with components: {', '.join(components)}",
        lexical_text=" ".join(part for part in lexical_parts if part),
        raw_text=content[:TEMPLATE_RAW_TEXT_CHARS],
        references=calls,
    )
