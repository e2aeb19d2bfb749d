"""Statement template lines."""

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from budget_reporting.database import Base
from budget_reporting.models.base import IntIdMixin, JSONType


class StatementTemplateLine(Base, IntIdMixin):
    """One line of a statement template.

    ``parent_line_id`` points at another line of the same statement; a line
    with children is a roll-up and never sources its own events.
    """

    __tablename__ = "statement_templates"
    __table_args__ = (
        UniqueConstraint("statement_code", "line_code", name="uq_statement_template_line_code"),
    )

    statement_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    statement_name: Mapped[str] = mapped_column(String(150), nullable=False)
    line_code: Mapped[str] = mapped_column(String(80), nullable=False)
    line_item: Mapped[str] = mapped_column(String(255), nullable=False)
    event_codes: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_total_line: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_subtotal_line: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_line_id: Mapped[int | None] = mapped_column(
        ForeignKey("statement_templates.id", ondelete="SET NULL"), nullable=True
    )
    # "metadata" is reserved on declarative classes
    line_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONType, nullable=True
    )
