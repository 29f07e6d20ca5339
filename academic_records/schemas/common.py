from typing import Annotated, Any, Optional

from pydantic import StringConstraints

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def blank_to_none(value: Any) -> Optional[Any]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value
