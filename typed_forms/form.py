from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from .changeset import Changeset, Error, ErrorOpts


_INTERPOLATION = re.compile(r"%\{(\w+)\}")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def underscore(name: str) -> str:
    """``TestFormBasic`` -> ``test_form_basic``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def json_safe(value: Any) -> Any:
    """Params as JSON-ready values; uploaded files are reported by filename."""
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if hasattr(value, "filename") and hasattr(value, "read"):
        return value.filename
    return value


def interpolate(message: str, opts: ErrorOpts) -> str:
    """Replace ``%{key}`` placeholders with the matching option value."""

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(opts.get(key, key))

    return _INTERPOLATION.sub(_sub, message)


@dataclass(slots=True)
class FormField:
    form: "Form"
    field: str
    id: str
    name: str
    value: Any
    errors: list[Error]


@dataclass(slots=True)
class Form:
    """A changeset prepared for rendering.

    ``errors`` stays empty until the changeset carries an action, so a freshly
    created form does not show errors for fields the user never touched.
    """

    source: Changeset
    name: str
    id: str
    data: BaseModel
    params: dict[str, Any] = field(default_factory=dict)
    errors: list[tuple[str, Error]] = field(default_factory=list)
    hidden: list[tuple[str, Any]] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> FormField:
        if name not in type(self.data).model_fields:
            raise KeyError(name)
        if name in self.params:
            value = self.params[name]
        else:
            value = self.source.get_field(name)
        return FormField(
            form=self,
            field=name,
            id=f"{self.id}_{name}",
            name=f"{self.name}[{name}]",
            value=value,
            errors=[error for field_name, error in self.errors if field_name == name],
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "data": self.data.model_dump(mode="json", warnings=False),
            "params": json_safe(self.params),
            "errors": form_errors(self),
            "valid": self.source.valid,
        }


def to_form(changeset: Changeset, *, as_: str | None = None, id: str | None = None, **options: Any) -> Form:
    name = as_ or underscore(type(changeset.data).__name__)
    return Form(
        source=changeset,
        name=name,
        id=id or name,
        data=changeset.data,
        params=dict(changeset.params),
        errors=list(changeset.errors) if changeset.action else [],
        options=options,
    )


def form_errors(form: Form) -> dict[str, list[str]]:
    return form.source.traverse_errors(interpolate)
