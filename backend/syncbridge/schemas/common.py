"""
Common Pydantic schemas (message, error).
"""

from pydantic import BaseModel


class MessageResponse(BaseModel):
    message: str


class ErrorDetail(BaseModel):
    detail: str
