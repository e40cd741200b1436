from typing import List, Optional

from fastapi import HTTPException


class MethodNotAllowedException(HTTPException):
    def __init__(self, detail: str = "Method not allowed", headers: Optional[dict] = None):
        super().__init__(status_code=405, detail=detail, headers=headers)


class ValidationFailedException(HTTPException):
    def __init__(self, errors: List[dict], detail: str = "Invalid request data"):
        super().__init__(status_code=400, detail=detail)
        self.errors = errors


class UpstreamException(HTTPException):
    def __init__(self, detail: str = "Failed to process chat message"):
        super().__init__(status_code=500, detail=detail)


class UpstreamError(Exception):
    """Raised by the forwarder when the webhook call does not yield a JSON reply."""
