#!/usr/bin/env python
# Session state for the property chat client
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class SessionState:
    """Authenticated user of the running client"""
    
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    
    def is_authenticated(self) -> bool:
        """Check if user is currently authenticated"""
        return self.access_token is not None
    
    def set_auth(self, data: Dict[str, Any]) -> None:
        """Set authentication data from API response"""
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token", self.refresh_token)
        self.user_id = data.get("user_id", self.user_id)
        self.email = data.get("email", self.email)
    
    def set_profile(self, identity: Dict[str, Any]) -> None:
        """Set display identity from the user directory"""
        self.name = identity.get("name")
        self.picture = identity.get("picture")
    
    def auth_data(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user_id": self.user_id,
            "email": self.email,
        }
    
    def clear_auth(self) -> None:
        """Clear authentication data"""
        self.access_token = None
        self.refresh_token = None
        self.user_id = None
        self.email = None
        self.name = None
        self.picture = None


# Global state instance
session_state = SessionState()
