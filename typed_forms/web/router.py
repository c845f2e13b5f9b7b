import logging
from collections.abc import Callable, Mapping
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from typed_forms.form import underscore
from typed_forms.typed_form import TypedForm
from .params import form_params


logger = logging.getLogger(__name__)

ConstraintsProvider = Callable[[Request], Mapping[str, Any]]


def build_form_router(
    form_cls: type[TypedForm],
    *,
    prefix: str | None = None,
    constraints: ConstraintsProvider | None = None,
) -> APIRouter:
    """Expose a typed form as new / validate / submit endpoints.

    ``constraints`` reads runtime constraints from the request, e.g. a
    ``max_qty`` query parameter; a KeyError or ValueError it raises becomes a 400.
    """
    name = form_cls.form_name or underscore(form_cls.__name__)
    router = APIRouter(prefix=prefix or f"/forms/{name}", tags=["forms"])

    def get_constraints(request: Request) -> dict[str, Any]:
        if constraints is None:
            return {}
        try:
            return dict(constraints(request))
        except (KeyError, ValueError) as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid form constraints: {e}")

    ParamsDep = Annotated[dict[str, Any], Depends(form_params(name))]
    ConstraintsDep = Annotated[dict[str, Any], Depends(get_constraints)]

    @router.get("")
    def new_form(form_constraints: ConstraintsDep):
        return form_cls.new_form(**form_constraints).as_dict()

    @router.post("/validate")
    def validate_form(params: ParamsDep, form_constraints: ConstraintsDep):
        return form_cls.update_form(params, **form_constraints).as_dict()

    @router.post("")
    def submit_form(params: ParamsDep, form_constraints: ConstraintsDep):
        form = form_cls.update_form(params, **form_constraints)
        if form.source.valid and form_cls.form_valid(form):
            logger.info("Accepted %s submission", form_cls.__name__)
            return {"status": "ok", "data": form.data.model_dump(mode="json")}
        logger.info("Rejected %s submission", form_cls.__name__)
        return JSONResponse(status_code=422, content=form.as_dict())

    logger.info("Registered form %s at %s", form_cls.__name__, router.prefix)
    return router
