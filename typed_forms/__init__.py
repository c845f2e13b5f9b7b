"""Typed schemas for web forms, with changeset casting and validation."""

from .changeset import Changeset, InvalidChangesetError, cast
from .form import Form, FormField, form_errors, interpolate, to_form
from .typed_form import TypedForm, UnsupportedConstraintsError, typed_form

__all__ = [
    "Changeset",
    "Form",
    "FormField",
    "InvalidChangesetError",
    "TypedForm",
    "UnsupportedConstraintsError",
    "cast",
    "form_errors",
    "interpolate",
    "to_form",
    "typed_form",
]
