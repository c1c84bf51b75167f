# app/services/auth_service.py
import logging
from typing import Dict, Any
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
import jwt

from app.database import get_supabase
from app.config import get_settings

logger = logging.getLogger(__name__)


class AuthService:
    """Service for verifying identity-provider tokens and refreshing sessions"""
    
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
    
    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """
        Sign in a user with the identity provider.
        """
        try:
            auth_response = get_supabase().auth.sign_in_with_password({
                "email": email,
                "password": password
            })
            
            return {
                "access_token": auth_response.session.access_token,
                "refresh_token": auth_response.session.refresh_token,
                "user_id": auth_response.user.id,
                "email": email
            }
        
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Authentication failed: {str(e)}"
            )
    
    def refresh_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh an authentication token with the identity provider.
        """
        try:
            response = get_supabase().auth.refresh_session(refresh_token)
            return {
                "access_token": response.session.access_token,
                "refresh_token": response.session.refresh_token,
                "user_id": response.user.id,
                "email": response.user.email
            }
        
        except Exception as e:
            logger.warning(f"Token refresh failed: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Token refresh failed: {str(e)}"
            )
    
    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a JWT issued by the identity provider and return its payload.
        """
        try:
            payload = jwt.decode(
                token, 
                self.settings.AUTH_JWT_SECRET, 
                algorithms=["HS256"],
                audience=self.settings.AUTH_JWT_AUDIENCE
            )
        except jwt.PyJWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token"
            )
        
        if not payload.get("sub"):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing subject"
            )
        
        return payload
