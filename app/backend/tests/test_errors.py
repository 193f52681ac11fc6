from __future__ import annotations

import pytest
from fastapi import HTTPException

from app.core.errors import ConflictError, NotFoundError, ValidationError


@pytest.mark.parametrize(
    ("error_cls", "status_code"),
    [(NotFoundError, 404), (ValidationError, 422), (ConflictError, 409)],
)
def test_domain_errors_carry_their_status_code(error_cls: type[HTTPException], status_code: int) -> None:
    error = error_cls("Something went wrong")

    assert isinstance(error, HTTPException)
    assert error.status_code == status_code
    assert error.detail == "Something went wrong"
    assert error.message == "Something went wrong"
