"""Response envelope shared by every endpoint."""

from typing import Any


def envelope(message: str, data: Any = None, success: bool = True) -> dict[str, Any]:
    """Wrap a payload as ``{success, message, data?}``."""
    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    return body
