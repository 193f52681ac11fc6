"""Marker for update fields the caller did not send.

``None`` on a nullable column means "clear it"; ``UNSET`` means "leave it".
"""

from __future__ import annotations

import enum
from typing import Final


class Unset(enum.Enum):
    UNSET = "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = Unset.UNSET
