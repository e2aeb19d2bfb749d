"""Statement templates: load, validate and walk the line tree."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.config import settings
from budget_reporting.logger import get_logger
from budget_reporting.models import Event, StatementTemplateLine
from budget_reporting.services.custom_event_mapper import mapping_from_metadata

logger = get_logger(__name__)


class TemplateError(Exception):
    """Raised when a template is missing or structurally invalid."""

    pass


@dataclass(frozen=True)
class TemplateLine:
    id: int
    line_code: str
    line_item: str
    event_codes: tuple[str, ...] = ()
    display_order: int = 0
    is_total: bool = False
    is_subtotal: bool = False
    parent_line_id: int | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def sign(self) -> int:
        """Contribution to the parent line: +1 (default) or -1."""
        raw = self.metadata.get("sign", 1)
        try:
            return -1 if int(raw) < 0 else 1
        except (TypeError, ValueError):
            return 1

    @property
    def note(self) -> str | None:
        note = self.metadata.get("note")
        return str(note) if note is not None else None

    @classmethod
    def from_row(cls, row: StatementTemplateLine) -> TemplateLine:
        return cls(
            id=row.id,
            line_code=row.line_code,
            line_item=row.line_item,
            event_codes=tuple(row.event_codes or ()),
            display_order=row.display_order,
            is_total=row.is_total_line,
            is_subtotal=row.is_subtotal_line,
            parent_line_id=row.parent_line_id,
            metadata=dict(row.line_metadata or {}),
        )


@dataclass(frozen=True)
class Template:
    """Validated, immutable template.

    Lines live in a flat tuple ordered for display; ``parent_index`` and
    ``child_indices`` are positions into that tuple.
    """

    statement_code: str
    statement_name: str
    lines: tuple[TemplateLine, ...]
    parent_index: tuple[int | None, ...]
    child_indices: tuple[tuple[int, ...], ...]

    @classmethod
    def from_lines(
        cls,
        statement_code: str,
        statement_name: str,
        lines: Iterable[TemplateLine],
    ) -> Template:
        ordered = tuple(sorted(lines, key=lambda line: (line.display_order, line.id)))

        position_by_id: dict[int, int] = {}
        seen_codes: set[str] = set()
        for position, line in enumerate(ordered):
            if line.id in position_by_id:
                raise TemplateError(f"Duplicate line id {line.id} in template {statement_code}")
            if line.line_code in seen_codes:
                raise TemplateError(
                    f"Duplicate line code {line.line_code} in template {statement_code}"
                )
            position_by_id[line.id] = position
            seen_codes.add(line.line_code)

        parent_index: list[int | None] = []
        children: list[list[int]] = [[] for _ in ordered]
        for position, line in enumerate(ordered):
            if line.parent_line_id is None:
                parent_index.append(None)
                continue
            parent_position = position_by_id.get(line.parent_line_id)
            if parent_position is None:
                raise TemplateError(
                    f"Line {line.line_code} references unknown parent {line.parent_line_id}"
                )
            parent_index.append(parent_position)
            children[parent_position].append(position)

        # Parent chains must terminate at a root
        for start in range(len(ordered)):
            visited = {start}
            cursor = parent_index[start]
            while cursor is not None:
                if cursor in visited:
                    raise TemplateError(
                        f"Cycle in template {statement_code} at line {ordered[start].line_code}"
                    )
                visited.add(cursor)
                cursor = parent_index[cursor]

        return cls(
            statement_code=statement_code,
            statement_name=statement_name,
            lines=ordered,
            parent_index=tuple(parent_index),
            child_indices=tuple(tuple(items) for items in children),
        )

    def has_children(self, index: int) -> bool:
        return bool(self.child_indices[index])

    def parent_of(self, index: int) -> TemplateLine | None:
        parent = self.parent_index[index]
        return None if parent is None else self.lines[parent]

    def line_by_code(self, line_code: str) -> TemplateLine | None:
        return next((line for line in self.lines if line.line_code == line_code), None)

    def leaf_indices(self) -> list[int]:
        return [index for index in range(len(self.lines)) if not self.has_children(index)]

    def evaluation_order(self) -> list[int]:
        """Indices with every child before its parent."""
        order: list[int] = []
        stack: list[tuple[int, bool]] = [
            (index, False) for index in reversed(range(len(self.lines))) if self.parent_index[index] is None
        ]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                order.append(index)
                continue
            stack.append((index, True))
            stack.extend((child, False) for child in reversed(self.child_indices[index]))
        return order

    def event_codes(self) -> set[str]:
        """Codes sourced by leaf lines; roll-up lines never read events."""
        codes: set[str] = set()
        for index in self.leaf_indices():
            codes.update(self.lines[index].event_codes)
        return codes


def validate_event_references(template: Template, known_codes: Iterable[str]) -> list[str]:
    """Event codes named by the template that the catalog does not know."""
    known = set(known_codes)
    referenced: list[str] = []
    for index in template.leaf_indices():
        line = template.lines[index]
        referenced.extend(line.event_codes)
        mapping = mapping_from_metadata(line.line_code, line.metadata)
        if mapping is not None:
            referenced.extend(mapping.event_codes())
    return sorted({code for code in referenced if code not in known})


class TemplateEngine:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_template(self, statement_code: str) -> Template:
        result = await self.db.execute(
            select(StatementTemplateLine)
            .where(StatementTemplateLine.statement_code == statement_code)
            .order_by(StatementTemplateLine.display_order, StatementTemplateLine.id)
        )
        rows = result.scalars().all()
        if not rows:
            raise TemplateError(f"Template not found: {statement_code}")

        template = Template.from_lines(
            statement_code=statement_code,
            statement_name=rows[0].statement_name,
            lines=[TemplateLine.from_row(row) for row in rows],
        )

        known = (await self.db.execute(select(Event.code))).scalars().all()
        missing = validate_event_references(template, known)
        if missing:
            if settings.strict_event_mappings:
                raise TemplateError(
                    f"Template {statement_code} references unknown events: {', '.join(missing)}"
                )
            logger.warning(
                "Template references unknown event codes",
                statement_code=statement_code,
                missing_codes=missing,
            )
        return template

    async def list_statement_codes(self) -> list[str]:
        result = await self.db.execute(
            select(StatementTemplateLine.statement_code).distinct().order_by(StatementTemplateLine.statement_code)
        )
        return list(result.scalars().all())
