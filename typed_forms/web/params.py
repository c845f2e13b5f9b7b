from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from fastapi import HTTPException, Request, status


_KEY_PART = re.compile(r"\[([^\[\]]*)\]")


def _split_key(key: str) -> list[str]:
    bracket = key.find("[")
    if bracket <= 0 or not key.endswith("]"):
        return [key]
    head, tail = key[:bracket], key[bracket:]
    parts = _KEY_PART.findall(tail)
    if "".join(f"[{part}]" for part in parts) != tail:
        return [key]
    return [head, *parts]


def decode_form_params(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Nest bracketed form keys: ``user[name]=x&tags[]=a`` -> ``{"user": {"name": "x"}, "tags": ["a"]}``."""
    decoded: dict[str, Any] = {}
    for key, value in items:
        parts = _split_key(key)
        if "" in parts[:-1]:
            raise ValueError(f"Unsupported form key: {key}")
        *path, last = parts
        list_key = None
        if last == "":
            *path, list_key = path

        current = decoded
        for part in path:
            node = current.setdefault(part, {})
            if not isinstance(node, dict):
                raise ValueError(f"Conflicting form key: {key}")
            current = node

        if list_key is None:
            if isinstance(current.get(last), (dict, list)):
                raise ValueError(f"Conflicting form key: {key}")
            current[last] = value
        else:
            node = current.setdefault(list_key, [])
            if not isinstance(node, list):
                raise ValueError(f"Conflicting form key: {key}")
            node.append(value)
    return decoded


async def read_form_params(request: Request, form_name: str) -> dict[str, Any]:
    """Params submitted for ``form_name``, from a form-encoded or JSON body.

    Params nested under the form name are preferred; a flat body is used as is.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body")
        if not isinstance(body, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Expected a JSON object")
    elif content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        try:
            body = decode_form_params(form.multi_items())
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    else:
        body = {}

    nested = body.get(form_name)
    if isinstance(nested, dict):
        return nested
    return body


def form_params(form_name: str):
    """Dependency factory reading the params submitted for ``form_name``."""

    async def dependency(request: Request) -> dict[str, Any]:
        return await read_form_params(request, form_name)

    return dependency
