"""FastAPI surface for typed forms.

- params.py  (form-encoded / JSON body decoding)
- router.py  (new / validate / submit endpoints for one form)
- app.py     (application factory mounting form routers)
"""

from .app import create_app
from .params import decode_form_params, form_params, read_form_params
from .router import build_form_router

__all__ = [
    "build_form_router",
    "create_app",
    "decode_form_params",
    "form_params",
    "read_form_params",
]
