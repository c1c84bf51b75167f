# app/api/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.auth_service import AuthService
from app.services.directory_service import DirectoryService
from app.models.user import User

# Setup security scheme
security = HTTPBearer()


def authenticate_token(token: str, db: Session) -> User:
    """
    Verify a bearer token and return the caller's directory record.
    The record is created from the token claims if it doesn't exist yet.
    """
    payload = AuthService(db).verify_token(token)
    
    try:
        return DirectoryService(db).sync_from_claims(payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid user data in token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security), 
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from a JWT token.
    """
    try:
        return authenticate_token(credentials.credentials, db)
    except HTTPException as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"}
        )
