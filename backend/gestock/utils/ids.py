"""Id helpers.

Backend ids are UUID4 strings.  Rows that exist only locally (optimistic
inserts not yet persisted) carry a ``TempId`` instead: a separate, tagged
id space that must never reach the store or the reconciler.
"""

import itertools
import uuid

TEMP_PREFIX = "tmp_"

_temp_counter = itertools.count(1)


def new_id() -> str:
    return str(uuid.uuid4())


class TempId(str):
    """Identifier of a row that has not been persisted yet."""

    @classmethod
    def next(cls) -> "TempId":
        return cls(f"{TEMP_PREFIX}{next(_temp_counter)}")


def is_temp_id(value: object) -> bool:
    return isinstance(value, str) and value.startswith(TEMP_PREFIX)
