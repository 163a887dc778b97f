"""
Resolves an item's declared fields against its template.

Resolution happens in two phases, both before any network access:

1. Merge: the template's fields form the base layer and the item's own fields
   replace same-named template fields entirely.
2. Substitute: every ``{identifier}`` token in the merged values is replaced
   with the item's own declared value for that identifier. Substitution is a
   single pass; values produced by a substitution are never re-scanned.

Braces that do not enclose an identifier (regex quantifiers such as ``\\d{3}``
or ``{1,2}``, JSONPath filters) are left untouched.
"""

import logging
import re

from pydantic import ValidationError

from lifter_cli.exceptions import InvalidConfiguration
from lifter_cli.models.item import (
    CONTROL_FIELDS,
    ItemDeclaration,
    ResolvedItem,
    Template,
)
from lifter_cli.utils.config_validator import validate_item_fields
from lifter_cli.utils.formatting import item_tag

log = logging.getLogger(__name__)

_PLACEHOLDER_REGEX = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def merge_fields(
    declared: dict[str, str], template: Template | None
) -> dict[str, str]:
    """Overlays the item's declared fields on top of the template's fields."""
    merged = dict(template.fields) if template else {}
    merged.update(declared)
    return merged


def substitute(value: str, variables: dict[str, str], item: str) -> str:
    """
    Replaces each ``{name}`` token in ``value`` with ``variables[name]``.

    Raises:
        InvalidConfiguration: If a token names a field the item does not declare.
    """
    missing = []

    def replacer(match: re.Match) -> str:
        key = match.group(1)
        # INI option names are stored lowercased.
        lookup = key if key in variables else key.lower()
        if lookup not in variables:
            missing.append(key)
            return match.group(0)
        return variables[lookup]

    result = _PLACEHOLDER_REGEX.sub(replacer, value)
    if missing:
        raise InvalidConfiguration(
            f"Unresolved placeholder(s) {', '.join('{' + m + '}' for m in missing)} "
            f"in value '{value}'. Declare "
            f"{'it' if len(missing) == 1 else 'them'} in the item's section.",
            item=item,
        )
    return result


def resolve_fields(
    declaration: ItemDeclaration, templates: dict[str, Template]
) -> dict[str, str]:
    """
    Produces the resolved field mapping for an item.

    Raises:
        InvalidConfiguration: If the referenced template does not exist or a
        placeholder cannot be resolved.
    """
    template = None
    if ref := declaration.template_ref:
        template = templates.get(ref)
        if template is None:
            raise InvalidConfiguration(
                f"The specified template '{ref}' was not found in the list of "
                f"available templates: {sorted(templates)}",
                item=declaration.name,
            )
        log.debug(f"{item_tag(declaration.name)} Using template '{ref}'")

    merged = merge_fields(declaration.fields, template)
    variables = declaration.fields

    resolved = {}
    for key, value in merged.items():
        if key in CONTROL_FIELDS:
            resolved[key] = value
        else:
            resolved[key] = substitute(value, variables, declaration.name)

    log.debug(f"{item_tag(declaration.name)} Substitutions complete: {resolved}")
    return resolved


def resolve_item(
    declaration: ItemDeclaration, templates: dict[str, Template]
) -> ResolvedItem:
    """
    Resolves a declared item into an immutable, validated ``ResolvedItem``.

    Resolution fails fast: either a complete item is returned or
    ``InvalidConfiguration`` is raised, never a partially resolved value.
    """
    fields = resolve_fields(declaration, templates)

    is_valid, errors = validate_item_fields(fields)
    if not is_valid:
        raise InvalidConfiguration(
            "Section is missing required fields or has invalid values: "
            + "; ".join(errors),
            item=declaration.name,
        )

    try:
        return ResolvedItem.model_validate(
            {**fields, "name": declaration.name, "resolved_fields": fields}
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'section'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidConfiguration(
            f"Invalid item configuration: {problems}", item=declaration.name
        ) from e
