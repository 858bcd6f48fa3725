"""
Identities handed to controllers by the auth layer.
"""
from pydantic import BaseModel
from typing import Optional


class UserContext(BaseModel):
    """Authenticated dashboard user"""
    user_id: str
    email: Optional[str] = None


class DeviceContext(BaseModel):
    """Authenticated device and the user who owns it"""
    device_id: str
    user_id: str
    name: Optional[str] = None
