"""
Pydantic models for the HTTP API.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SendTextRequest(BaseModel):
    """POST /send request body."""

    chat_id: str = Field(min_length=1)
    text: str = Field(min_length=1)


class SendFileRequest(BaseModel):
    """POST /send-file request body."""

    chat_id: str = Field(min_length=1)
    file_url: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    mime_type: str = "application/pdf"

    def to_payload(self) -> dict[str, Any]:
        """Media payload handed to the client driver."""
        filename = self.file_name
        if self.mime_type == "application/pdf" and not filename.endswith(".pdf"):
            filename = f"{filename}.pdf"
        return {
            "type": "media",
            "url": self.file_url,
            "filename": filename,
            "mime_type": self.mime_type,
        }


class QrResponse(BaseModel):
    """GET /qr response."""

    qr: Optional[str] = None
    connected: bool = False


class ActionResponse(BaseModel):
    """Response of trigger endpoints (logout, restart, clear-session)."""

    status: str
    success: bool = True
