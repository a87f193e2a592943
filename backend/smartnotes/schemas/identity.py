"""
SmartNotes Backend — Identity Value
=====================================

What:  The authenticated caller, as issued by the external identity provider.
How:   Built by the auth service from a verified session token and passed
       explicitly into every lifecycle operation. `None` means anonymous.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Identity(BaseModel):
    user_id: str = Field(min_length=1, description="Opaque user id (token `sub`)")
    email: str = Field(default="", description="Account email")
    display_name: Optional[str] = Field(default=None, description="First name or full name")

    model_config = {"frozen": True}

    @property
    def greeting_name(self) -> str:
        """Name used to greet the user: display name, else email."""
        return self.display_name or self.email
