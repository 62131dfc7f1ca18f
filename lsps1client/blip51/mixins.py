from typing import Optional


class ErrorMessageMixin:
    error_message: Optional[str] = None
