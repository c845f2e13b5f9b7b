import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from typed_forms import TypedForm, cast
from typed_forms.web import build_form_router, create_app


class OrderForm(TypedForm):
    order_id: str
    qty: int

    @classmethod
    def changeset(cls, existing, attrs, **constraints):
        return cast(existing, attrs, cls.form_fields()).validate_number("qty", greater_than=0)


class ClaimForm(TypedForm):
    form_name = "claim"

    claim_id: str
    qty: int

    @classmethod
    def changeset(cls, existing, attrs, *, max_qty):
        return (
            cast(existing, attrs, cls.form_fields())
            .validate_number("qty", greater_than=0, less_than_or_equal_to=max_qty)
        )


def claim_constraints(request):
    return {"max_qty": int(request.query_params["max_qty"])}


@pytest.fixture()
def client():
    return TestClient(create_app(forms=[OrderForm]))


@pytest.fixture()
def claim_client():
    app = FastAPI()
    app.include_router(build_form_router(ClaimForm, prefix="/claims", constraints=claim_constraints))
    return TestClient(app)
