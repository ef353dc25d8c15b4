from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

from .errors import ValidationError

DELIMITER = "---"


@dataclass(frozen=True)
class FrontMatter:
    fields: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def parse_front_matter(text: str) -> FrontMatter:
    """
    Split a SKILL.md document into its YAML header and free-form body.

    The header must open on the very first line with ``---`` and close with a line
    containing only ``---``. Documents without a header yield empty fields and the
    whole text as body; a header that is not a mapping raises ValidationError.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    if normalized.startswith("\ufeff"):
        normalized = normalized[1:]

    lines = normalized.split("\n")
    if not lines or lines[0].strip() != DELIMITER:
        return FrontMatter(fields={}, body=normalized)

    end: int | None = None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == DELIMITER:
            end = idx
            break
    if end is None:
        raise ValidationError("Front matter is not terminated (missing closing ---).")

    header = "\n".join(lines[1:end])
    body = "\n".join(lines[end + 1 :])

    try:
        # BaseLoader leaves every scalar a string (`name: 2048`, `name: on`).
        parsed = yaml.load(header, Loader=yaml.BaseLoader) if header.strip() else {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML front matter: {e}") from e
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ValidationError("Front matter must be a mapping of key: value pairs.")

    return FrontMatter(fields={str(k): v for k, v in parsed.items()}, body=body)


def split_tags(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(x) for x in raw]
    else:
        items = str(raw).split(",")
    return [t.strip() for t in items if t is not None and t.strip()]


def render_front_matter(fields: dict[str, Any], body: str) -> str:
    header = yaml.safe_dump(fields, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"{DELIMITER}\n{header}{DELIMITER}\n{body}"
