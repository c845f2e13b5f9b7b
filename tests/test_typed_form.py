from typing import Literal

import pytest
from pydantic import ConfigDict, Field, field_validator

from typed_forms import TypedForm, UnsupportedConstraintsError, cast, typed_form


class BasicForm(TypedForm):
    """The most basic form possible: no constraints, no custom changeset."""

    name: str
    age: int


class DefaultsForm(TypedForm):
    default_values = {"name": "John", "age": 30}

    name: str
    age: int


class ConstraintsForm(TypedForm):
    """Extra validations in the changeset only."""

    order_id: str
    qty: int

    @classmethod
    def changeset(cls, existing, attrs, **constraints):
        return cast(existing, attrs, cls.form_fields()).validate_number("qty", greater_than=0)


class RuntimeConstraintsForm(TypedForm):
    """Extra validations with a bound supplied at runtime."""

    order_id: str
    qty: int

    @classmethod
    def changeset(cls, existing, attrs, *, max_qty):
        return (
            cast(existing, attrs, cls.form_fields())
            .validate_number("qty", greater_than=0, less_than=max_qty)
        )


class SchemaConstraintsForm(TypedForm):
    qty: int = Field(gt=0)
    code: str = Field(max_length=3)


class CountryForm(TypedForm):
    name: str
    country: str = "NL"


def test_new_form_creates_an_empty_form():
    form = BasicForm.new_form()
    assert dict(form.data) == {"name": None, "age": None}


def test_new_form_with_attrs():
    form = BasicForm.new_form({"name": "John", "age": 30})
    assert dict(form.data) == {"name": "John", "age": 30}


def test_new_form_uses_custom_changeset():
    form = ConstraintsForm.new_form({"order_id": "order-id", "qty": -10})
    assert dict(form.data) == {"order_id": None, "qty": None}
    assert ConstraintsForm.get_error(form, "qty") == ["must be greater than 0"]


def test_new_form_uses_runtime_constraints():
    form = RuntimeConstraintsForm.new_form({"order_id": "order-id", "qty": 10}, max_qty=5)
    assert dict(form.data) == {"order_id": None, "qty": None}
    assert RuntimeConstraintsForm.get_error(form, "qty") == ["must be less than 5"]


def test_new_form_uses_default_values():
    form = DefaultsForm.new_form()
    assert dict(form.data) == {"name": "John", "age": 30}


def test_new_form_attrs_override_default_values():
    form = DefaultsForm.new_form({"age": 41})
    assert dict(form.data) == {"name": "John", "age": 41}


def test_update_form_updates_the_form():
    form = BasicForm.new_form()
    assert dict(form.data) == {"name": None, "age": None}

    form = BasicForm.update_form({"name": "John", "age": 30})
    assert dict(form.data) == {"name": "John", "age": 30}


def test_update_form_casts_submitted_strings():
    form = BasicForm.update_form({"name": "John", "age": "30"})
    assert form.data.age == 30
    assert form.params == {}


def test_update_form_uses_custom_changeset():
    form = ConstraintsForm.update_form({"order_id": "order-id", "qty": -10})
    assert dict(form.data) == {"order_id": None, "qty": None}
    assert ConstraintsForm.get_error(form, "qty") == ["must be greater than 0"]
    assert form.params == {"order_id": "order-id", "qty": -10}


def test_update_form_uses_runtime_constraints():
    form = RuntimeConstraintsForm.update_form({"order_id": "order-id", "qty": 10}, max_qty=5)
    assert dict(form.data) == {"order_id": None, "qty": None}
    assert RuntimeConstraintsForm.get_error(form, "qty") == ["must be less than 5"]

    form = RuntimeConstraintsForm.update_form({"order_id": "order-id", "qty": 4}, max_qty=5)
    assert dict(form.data) == {"order_id": "order-id", "qty": 4}
    assert RuntimeConstraintsForm.get_error(form, "qty") == []


def test_update_form_enforces_schema_constraints():
    form = SchemaConstraintsForm.update_form({"qty": 0, "code": "ABCD"})
    assert SchemaConstraintsForm.get_error(form, "qty") == ["must be greater than 0"]
    assert SchemaConstraintsForm.get_error(form, "code") == ["should be at most 3 character(s)"]


def test_empty_strings_are_treated_as_missing():
    form = BasicForm.update_form({"name": "", "age": "   "})
    assert dict(form.data) == {"name": None, "age": None}
    assert BasicForm.get_error(form, "age") == []
    assert not BasicForm.form_valid(form)


def test_declared_defaults_survive_in_empty_forms():
    form = CountryForm.new_form()
    assert dict(form.data) == {"name": None, "country": "NL"}


def test_form_valid_determines_validity():
    form = BasicForm.new_form()
    assert not BasicForm.form_valid(form)

    form = BasicForm.update_form({"name": "John", "age": 30})
    assert BasicForm.form_valid(form)


def test_get_error_returns_form_errors():
    form = BasicForm.new_form()
    assert BasicForm.get_error(form, "name") == []
    assert BasicForm.get_error(form, "age") == []

    form = BasicForm.update_form({"name": 123, "age": "thirty"})
    assert BasicForm.get_error(form, "name") == ["is invalid"]
    assert BasicForm.get_error(form, "age") == ["is invalid"]
    assert BasicForm.get_error(form, "missing") == []


def test_default_changeset_rejects_constraints():
    with pytest.raises(UnsupportedConstraintsError):
        BasicForm.new_form(max_qty=5)


def test_form_fields_keep_declaration_order():
    assert ConstraintsForm.form_fields() == ("order_id", "qty")


def test_form_field_access():
    form = BasicForm.update_form({"name": "John", "age": "x"})
    age = form["age"]
    assert age.id == "basic_form_age"
    assert age.name == "basic_form[age]"
    assert age.value == "x"
    assert [message for message, _ in age.errors] == ["is invalid"]
    assert form["name"].value == "John"
    assert form["name"].errors == []

    with pytest.raises(KeyError):
        form["nope"]


def test_fresh_forms_hide_errors():
    form = BasicForm.new_form({"name": "John"})
    assert form.errors == []
    assert form.source.action is None


def test_typed_form_decorator_sets_options():
    @typed_form(default_values={"name": "Ann"}, form_name="person")
    class PersonForm(TypedForm):
        name: str

    form = PersonForm.new_form()
    assert form.data.name == "Ann"
    assert form.name == "person"
    assert form["name"].name == "person[name]"


def test_typed_form_decorator_rejects_unknown_defaults():
    with pytest.raises(ValueError):

        @typed_form(default_values={"nickname": "Ann"})
        class PersonForm(TypedForm):
            name: str


def test_form_as_dict():
    form = ConstraintsForm.update_form({"order_id": "A1", "qty": "0"})
    assert form.as_dict() == {
        "name": "constraints_form",
        "data": {"order_id": None, "qty": None},
        "params": {"order_id": "A1", "qty": "0"},
        "errors": {"qty": ["must be greater than 0"]},
        "valid": False,
    }


def test_schema_pattern_and_literal_constraints():
    class ShippingForm(TypedForm):
        code: str = Field(pattern=r"^[A-Z]+$")
        speed: Literal["standard", "express"]

    form = ShippingForm.update_form({"code": "ab1", "speed": "warp"})
    assert ShippingForm.get_error(form, "code") == ["has invalid format"]
    assert ShippingForm.get_error(form, "speed") == ["is invalid"]
    assert form.source.errors_on("speed") == [("is invalid", {"validation": "inclusion", "enum": ["standard", "express"]})]

    form = ShippingForm.update_form({"code": "AB", "speed": "express"})
    assert ShippingForm.form_valid(form)


class CallsignForm(TypedForm):
    model_config = ConfigDict(str_strip_whitespace=True)

    callsign: str

    @field_validator("callsign")
    @classmethod
    def no_digits(cls, value):
        if any(ch.isdigit() for ch in value):
            raise ValueError("digits are not allowed")
        return value


def test_schema_validators_and_config_apply_on_cast():
    form = CallsignForm.update_form({"callsign": "  r2d2  "})
    assert dict(form.data) == {"callsign": None}
    assert CallsignForm.get_error(form, "callsign") == ["is invalid"]
    [(_, opts)] = form.source.errors_on("callsign")
    assert opts["validation"] == "custom"
    assert "digits are not allowed" in opts["reason"]

    form = CallsignForm.update_form({"callsign": "  robot  "})
    assert dict(form.data) == {"callsign": "robot"}


class FieldKey:
    def __init__(self, name):
        self.name = name

    def __str__(self):
        return self.name


def test_non_string_attr_keys_are_converted():
    form = BasicForm.update_form({FieldKey("name"): "John", "age": 30})
    assert dict(form.data) == {"name": "John", "age": 30}

    form = BasicForm.update_form({FieldKey("age"): "x", 7: "ignored"})
    assert form.params == {"age": "x", "7": "ignored"}
    assert BasicForm.get_error(form, "age") == ["is invalid"]


def test_class_body_defaults_are_checked():
    with pytest.raises(ValueError):

        class NicknameForm(TypedForm):
            default_values = {"nickname": "Ann"}

            name: str
