"""Typed views over the free-form ``form_data`` JSON column.

Planning and execution rows store different extra fields, but both carry an
``amount`` the statement engine sums. Anything that is not a number becomes
zero instead of failing the whole aggregation.
"""

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def coerce_amount(value: Any) -> Decimal:
    """Convert a raw JSON value to Decimal, falling back to zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if isinstance(value, int | float):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
        return result if result.is_finite() else Decimal("0")
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            return Decimal("0")
        return result if result.is_finite() else Decimal("0")
    return Decimal("0")


class _FormDataBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    amount: Decimal = Decimal("0")
    quarters: dict[str, Decimal] | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return coerce_amount(value)

    @field_validator("quarters", mode="before")
    @classmethod
    def _coerce_quarters(cls, value: Any) -> dict[str, Decimal] | None:
        if not isinstance(value, dict):
            return None
        return {str(key): coerce_amount(item) for key, item in value.items()}


class PlanningFormData(_FormDataBase):
    """Budget figures entered during planning."""

    entity_type: Literal["planning"] = "planning"
    unit_cost: Decimal | None = None
    frequency: int | None = None

    @field_validator("unit_cost", mode="before")
    @classmethod
    def _coerce_unit_cost(cls, value: Any) -> Decimal | None:
        return None if value is None else coerce_amount(value)

    @field_validator("frequency", mode="before")
    @classmethod
    def _coerce_frequency(cls, value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, int | float | str):
            return None
        try:
            return int(value)
        except (ValueError, OverflowError):
            return None


class ExecutionFormData(_FormDataBase):
    """Actual spending recorded during execution."""

    entity_type: Literal["execution"] = "execution"
    comment: str | None = None


FormData = Annotated[PlanningFormData | ExecutionFormData, Field(discriminator="entity_type")]

_form_data_adapter: TypeAdapter[PlanningFormData | ExecutionFormData] = TypeAdapter(FormData)


def parse_form_data(entity_type: str, raw: dict[str, Any] | None) -> PlanningFormData | ExecutionFormData:
    """Validate a stored ``form_data`` payload for the given entity type.

    The stored discriminator is overridden by the row's own ``entity_type``.
    """
    payload = dict(raw or {})
    payload["entity_type"] = entity_type
    return _form_data_adapter.validate_python(payload)
