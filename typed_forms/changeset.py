from __future__ import annotations

import logging
import re
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from numbers import Number
from types import UnionType
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError

from typed_forms.core.config import settings


logger = logging.getLogger(__name__)

ErrorOpts = dict[str, Any]
Error = tuple[str, ErrorOpts]
Validator = Callable[[str, Any], Iterable[tuple[str, "str | Error"]]]

_NUMBER_CHECKS: tuple[tuple[str, str, Callable[[Any, Any], bool]], ...] = (
    ("less_than", "must be less than %{number}", lambda value, bound: value < bound),
    ("greater_than", "must be greater than %{number}", lambda value, bound: value > bound),
    ("less_than_or_equal_to", "must be less than or equal to %{number}", lambda value, bound: value <= bound),
    ("greater_than_or_equal_to", "must be greater than or equal to %{number}", lambda value, bound: value >= bound),
    ("equal_to", "must be equal to %{number}", lambda value, bound: value == bound),
    ("not_equal_to", "must be not equal to %{number}", lambda value, bound: value != bound),
)

_LENGTH_MESSAGES = {
    ("string", "is"): "should be %{count} character(s)",
    ("string", "min"): "should be at least %{count} character(s)",
    ("string", "max"): "should be at most %{count} character(s)",
    ("list", "is"): "should have %{count} item(s)",
    ("list", "min"): "should have at least %{count} item(s)",
    ("list", "max"): "should have at most %{count} item(s)",
}


class InvalidChangesetError(ValueError):
    """Raised by ``Changeset.apply_action`` when the changeset has errors."""

    def __init__(self, changeset: "Changeset"):
        self.changeset = changeset
        fields = ", ".join(sorted({name for name, _ in changeset.errors}))
        super().__init__(f"Invalid changeset for {type(changeset.data).__name__}: {fields}")


def empty_trimmed_string(value: Any) -> bool:
    return isinstance(value, str) and not value.strip()


def default_empty_values() -> list[Any]:
    if settings.EMPTY_VALUES_TRIM:
        return [empty_trimmed_string]
    return [""]


def _is_empty(value: Any, empty_values: Sequence[Any]) -> bool:
    for candidate in empty_values:
        if callable(candidate):
            if candidate(value):
                return True
        elif type(value) is type(candidate) and value == candidate:
            return True
    return False


def _type_name(annotation: Any) -> str:
    return getattr(annotation, "__name__", None) or repr(annotation)


def field_type(model: type[BaseModel], name: str) -> Any:
    """Annotation of one model field, with its declared constraints attached."""
    info = model.model_fields[name]
    if info.metadata:
        return Annotated[(info.annotation, *info.metadata)]
    return info.annotation


def choices(annotation: Any) -> list[Any] | None:
    """Allowed values of a ``Literal`` or ``Enum`` annotation, optional or not."""
    origin = get_origin(annotation)
    if origin is Literal:
        return list(get_args(annotation))
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return [member.value for member in annotation]
    if origin in (Union, UnionType):
        found = [value for arg in get_args(annotation) for value in (choices(arg) or [])]
        return found or None
    return None


def validate_field(data: BaseModel, name: str, raw: Any) -> Any:
    """Validate ``raw`` for one field through the model's own validator.

    Field validators and model config (``str_strip_whitespace``, ``strict``)
    apply as on assignment. ``data`` is left untouched.
    """
    scratch = data.model_copy()
    type(data).__pydantic_validator__.validate_assignment(scratch, name, raw)
    return getattr(scratch, name)


def translate_validation_error(exc: ValidationError, annotation: Any) -> Error:
    """Map the first pydantic error onto a message template and its options."""
    details = exc.errors()
    if not details:
        return "is invalid", {"type": _type_name(annotation), "validation": "cast"}
    detail = details[0]
    kind = detail.get("type", "")
    ctx = detail.get("ctx") or {}

    if kind == "greater_than":
        return "must be greater than %{number}", {"validation": "number", "kind": "greater_than", "number": ctx.get("gt")}
    if kind == "greater_than_equal":
        return (
            "must be greater than or equal to %{number}",
            {"validation": "number", "kind": "greater_than_or_equal_to", "number": ctx.get("ge")},
        )
    if kind == "less_than":
        return "must be less than %{number}", {"validation": "number", "kind": "less_than", "number": ctx.get("lt")}
    if kind == "less_than_equal":
        return (
            "must be less than or equal to %{number}",
            {"validation": "number", "kind": "less_than_or_equal_to", "number": ctx.get("le")},
        )
    if kind in {"string_too_short", "too_short"}:
        type_key = "string" if kind == "string_too_short" else "list"
        return _LENGTH_MESSAGES[(type_key, "min")], {
            "count": ctx.get("min_length"),
            "validation": "length",
            "kind": "min",
            "type": type_key,
        }
    if kind in {"string_too_long", "too_long"}:
        type_key = "string" if kind == "string_too_long" else "list"
        return _LENGTH_MESSAGES[(type_key, "max")], {
            "count": ctx.get("max_length"),
            "validation": "length",
            "kind": "max",
            "type": type_key,
        }
    if kind == "string_pattern_mismatch":
        return "has invalid format", {"validation": "format"}
    if kind in {"literal_error", "enum"}:
        return "is invalid", {"validation": "inclusion", "enum": choices(annotation) or ctx.get("expected")}
    if kind in {"value_error", "assertion_error"}:
        return "is invalid", {"validation": "custom", "reason": detail.get("msg", "")}
    return "is invalid", {"type": _type_name(annotation), "validation": "cast"}


@dataclass(slots=True)
class Changeset:
    """Tracks params cast onto a schema instance together with validation errors.

    Changesets are never mutated in place: every validation returns a new one,
    so calls can be chained.
    """

    data: BaseModel
    params: dict[str, Any] = field(default_factory=dict)
    changes: dict[str, Any] = field(default_factory=dict)
    errors: list[tuple[str, Error]] = field(default_factory=list)
    required: tuple[str, ...] = ()
    action: str | None = None
    valid: bool = True

    @property
    def schema(self) -> type[BaseModel]:
        return type(self.data)

    @property
    def types(self) -> dict[str, Any]:
        return {name: field_type(self.schema, name) for name in self.schema.model_fields}

    def _ensure_field(self, name: str) -> None:
        if name not in self.schema.model_fields:
            raise ValueError(f"Unknown field '{name}' for {self.schema.__name__}")

    # ---- Accessors ----
    def get_field(self, name: str, default: Any = None) -> Any:
        if name in self.changes:
            return self.changes[name]
        return getattr(self.data, name, default)

    def get_change(self, name: str, default: Any = None) -> Any:
        return self.changes.get(name, default)

    def errors_on(self, name: str) -> list[Error]:
        return [error for field_name, error in self.errors if field_name == name]

    # ---- Errors ----
    def add_error(self, name: str, message: str, **opts: Any) -> Changeset:
        return replace(self, errors=[*self.errors, (name, (message, opts))], valid=False)

    def traverse_errors(self, fn: Callable[[str, ErrorOpts], Any]) -> dict[str, list[Any]]:
        """Collect ``fn(message, opts)`` for every error, grouped by field."""
        traversed: dict[str, list[Any]] = {}
        for name, (message, opts) in self.errors:
            traversed.setdefault(name, []).append(fn(message, opts))
        return traversed

    # ---- Validations ----
    def validate_change(self, name: str, validator: Validator) -> Changeset:
        self._ensure_field(name)
        value = self.changes.get(name)
        if value is None:
            return self
        changeset = self
        for error_field, error in validator(name, value) or []:
            if isinstance(error, str):
                changeset = changeset.add_error(error_field, error)
            else:
                message, opts = error
                changeset = changeset.add_error(error_field, message, **opts)
        return changeset

    def validate_required(self, names: str | Iterable[str], message: str = "can't be blank") -> Changeset:
        if isinstance(names, str):
            names = [names]
        names = list(names)
        for name in names:
            self._ensure_field(name)
        errored = {name for name, _ in self.errors}
        changeset = replace(self, required=tuple(dict.fromkeys([*self.required, *names])))
        for name in names:
            value = self.get_field(name)
            if name in errored:
                continue
            if value is None or empty_trimmed_string(value):
                changeset = changeset.add_error(name, message, validation="required")
        return changeset

    def validate_number(
        self,
        name: str,
        *,
        less_than: Any = None,
        greater_than: Any = None,
        less_than_or_equal_to: Any = None,
        greater_than_or_equal_to: Any = None,
        equal_to: Any = None,
        not_equal_to: Any = None,
        message: str | None = None,
    ) -> Changeset:
        bounds = {
            "less_than": less_than,
            "greater_than": greater_than,
            "less_than_or_equal_to": less_than_or_equal_to,
            "greater_than_or_equal_to": greater_than_or_equal_to,
            "equal_to": equal_to,
            "not_equal_to": not_equal_to,
        }

        def check(field_name: str, value: Any) -> list[tuple[str, Error]]:
            if isinstance(value, bool) or not isinstance(value, Number):
                raise TypeError(f"validate_number expects a number in '{field_name}', got {value!r}")
            for kind, template, passes in _NUMBER_CHECKS:
                bound = bounds[kind]
                if bound is None or passes(value, bound):
                    continue
                opts = {"validation": "number", "kind": kind, "number": bound}
                return [(field_name, (message or template, opts))]
            return []

        return self.validate_change(name, check)

    def validate_length(
        self,
        name: str,
        *,
        is_: int | None = None,
        min: int | None = None,
        max: int | None = None,
        message: str | None = None,
    ) -> Changeset:
        def check(field_name: str, value: Any) -> list[tuple[str, Error]]:
            type_key = "string" if isinstance(value, str) else "list"
            length = len(value)
            for kind, bound, failed in (
                ("is", is_, lambda: length != is_),
                ("min", min, lambda: length < min),
                ("max", max, lambda: length > max),
            ):
                if bound is None or not failed():
                    continue
                template = message or _LENGTH_MESSAGES[(type_key, kind)]
                opts = {"count": bound, "validation": "length", "kind": kind, "type": type_key}
                return [(field_name, (template, opts))]
            return []

        return self.validate_change(name, check)

    def validate_inclusion(self, name: str, values: Collection[Any], message: str = "is invalid") -> Changeset:
        def check(field_name: str, value: Any) -> list[tuple[str, Error]]:
            if value in values:
                return []
            return [(field_name, (message, {"validation": "inclusion", "enum": list(values)}))]

        return self.validate_change(name, check)

    def validate_exclusion(self, name: str, values: Collection[Any], message: str = "is reserved") -> Changeset:
        def check(field_name: str, value: Any) -> list[tuple[str, Error]]:
            if value not in values:
                return []
            return [(field_name, (message, {"validation": "exclusion", "enum": list(values)}))]

        return self.validate_change(name, check)

    def validate_format(self, name: str, pattern: str | re.Pattern[str], message: str = "has invalid format") -> Changeset:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

        def check(field_name: str, value: Any) -> list[tuple[str, Error]]:
            if isinstance(value, str) and compiled.search(value):
                return []
            return [(field_name, (message, {"validation": "format"}))]

        return self.validate_change(name, check)

    # ---- Applying ----
    def apply_changes(self) -> BaseModel:
        return self.data.model_copy(update=self.changes)

    def apply_action(self, action: str) -> BaseModel:
        """Return the data with changes applied, or raise InvalidChangesetError."""
        if self.valid:
            return self.apply_changes()
        raise InvalidChangesetError(replace(self, action=action))


def cast(
    data: BaseModel,
    params: Mapping[Any, Any],
    permitted: Iterable[str],
    *,
    empty_values: Sequence[Any] | None = None,
) -> Changeset:
    """Cast ``params`` onto ``data`` for the ``permitted`` fields.

    Values are validated by the model itself, field validators included.
    ``None`` is accepted for every field; values matching ``empty_values``
    become ``None``.
    """
    schema = type(data)
    if empty_values is None:
        empty_values = default_empty_values()
    normalized = {str(key): value for key, value in params.items()}

    changes: dict[str, Any] = {}
    errors: list[tuple[str, Error]] = []
    for name in permitted:
        info = schema.model_fields.get(name)
        if info is None:
            raise ValueError(f"Unknown field '{name}' for {schema.__name__}")
        if name not in normalized:
            continue
        raw = normalized[name]
        if _is_empty(raw, empty_values):
            raw = None
        if raw is None:
            value = None
        else:
            try:
                value = validate_field(data, name, raw)
            except ValidationError as exc:
                logger.debug("Rejected %r for %s.%s", raw, schema.__name__, name)
                errors.append((name, translate_validation_error(exc, info.annotation)))
                continue
        if value != getattr(data, name, None):
            changes[name] = value

    return Changeset(data=data, params=normalized, changes=changes, errors=errors, valid=not errors)
