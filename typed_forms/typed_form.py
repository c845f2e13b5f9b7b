"""Typed forms derive their whole lifecycle from a pydantic schema.

Declare the fields on a ``TypedForm`` subclass and the class gains
``new_form``, ``update_form``, ``form_valid`` and ``get_error``::

    class OrderForm(TypedForm):
        order_id: str
        qty: int

        @classmethod
        def changeset(cls, existing, attrs, *, max_qty):
            return (
                cast(existing, attrs, cls.form_fields())
                .validate_number("qty", greater_than=0, less_than=max_qty)
            )

    form = OrderForm.new_form({"qty": 10}, max_qty=5)
    OrderForm.get_error(form, "qty")  # ["must be less than 5"]

Every field may hold ``None`` while the user is editing, and every field must
be filled in before ``form_valid`` reports the form as ready for submission.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, ClassVar, TypeVar

from pydantic import BaseModel

from .changeset import Changeset, InvalidChangesetError, cast
from .form import Form, form_errors, to_form


logger = logging.getLogger(__name__)

T = TypeVar("T", bound="TypedForm")


def _check_default_values(cls: type[BaseModel], default_values: Mapping[str, Any]) -> None:
    unknown = {str(key) for key in default_values} - set(cls.model_fields)
    if unknown:
        raise ValueError(f"Unknown default fields for {cls.__name__}: {', '.join(sorted(unknown))}")


class UnsupportedConstraintsError(TypeError):
    """Raised when runtime constraints reach a changeset that does not accept them."""


class TypedForm(BaseModel):
    default_values: ClassVar[dict[str, Any]] = {}
    form_name: ClassVar[str | None] = None

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        _check_default_values(cls, cls.default_values)

    @classmethod
    def form_fields(cls) -> tuple[str, ...]:
        return tuple(cls.model_fields)

    @classmethod
    def empty(cls: type[T]) -> T:
        """An instance holding ``None`` (or the declared default) in every field."""
        values: dict[str, Any] = {}
        for name, info in cls.model_fields.items():
            values[name] = None if info.is_required() else info.get_default(call_default_factory=True)
        return cls.model_construct(**values)

    @classmethod
    def changeset(cls, existing: TypedForm, attrs: Mapping[str, Any], **constraints: Any) -> Changeset:
        """Default changeset: cast every form field, no extra validations.

        Override it to add validations. Runtime constraints passed to
        ``new_form``/``update_form`` arrive here as keyword arguments, so an
        override that wants them must declare them.
        """
        if constraints:
            raise UnsupportedConstraintsError(
                f"{cls.__name__}.changeset does not accept constraints: {', '.join(sorted(constraints))}"
            )
        return cast(existing, attrs, cls.form_fields())

    @classmethod
    def new_form(cls, attrs: Mapping[str, Any] | None = None, **constraints: Any) -> Form:
        """Create a form from ``default_values`` overridden by ``attrs``."""
        merged = {**cls.default_values, **dict(attrs or {})}
        return cls.update_form(merged, **constraints)

    @classmethod
    def update_form(cls, attrs: Mapping[str, Any], **constraints: Any) -> Form:
        """Build a form from submitted params.

        Valid params become the form data; invalid ones leave the data empty
        and keep the params and errors for display.
        """
        try:
            value = cls.changeset(cls.empty(), attrs, **constraints).apply_action("new")
        except InvalidChangesetError as exc:
            logger.debug("Invalid %s submission: %s", cls.__name__, exc)
            return to_form(exc.changeset, as_=cls.form_name)
        return to_form(cls.changeset(value, {}, **constraints), as_=cls.form_name)

    @classmethod
    def form_valid(cls, form: Form) -> bool:
        """True when every field of the form data has been filled in."""
        data = form.data
        return all(getattr(data, name, None) is not None for name in type(data).model_fields)

    @classmethod
    def get_error(cls, form: Form, field: str) -> list[str]:
        """Rendered error messages for ``field``; empty when there are none."""
        return form_errors(form).get(field, [])


def typed_form(
    *,
    default_values: Mapping[str, Any] | None = None,
    form_name: str | None = None,
):
    """Class decorator setting the form options of a ``TypedForm`` subclass."""

    def decorator(cls: type[T]) -> type[T]:
        if not issubclass(cls, TypedForm):
            raise TypeError(f"{cls.__name__} must subclass TypedForm")
        if default_values is not None:
            _check_default_values(cls, default_values)
            cls.default_values = dict(default_values)
        if form_name is not None:
            cls.form_name = form_name
        return cls

    return decorator
