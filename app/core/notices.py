from __future__ import annotations

from collections.abc import Iterable


def normalize_notices(value: object) -> list[str]:
    if value is None:
        return []

    if isinstance(value, str):
        items: Iterable[object] = [value]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]

    notices: list[str] = []
    for item in items:
        text = item.strip() if isinstance(item, str) else str(item).strip()
        if text:
            notices.append(text)
    return notices


def compose_notices(
    inline: Iterable[str] = (),
    static: str | None = None,
    dynamic: Iterable[str] = (),
) -> list[str]:
    ordered = [*normalize_notices(list(inline)), *normalize_notices(static)]
    ordered.extend(normalize_notices(list(dynamic)))
    return dedupe_preserve_order(ordered)


def dedupe_preserve_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    deduped: list[str] = []

    for item in items:
        if item in seen:
            continue
        seen.add(item)
        deduped.append(item)

    return deduped
