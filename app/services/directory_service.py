# app/services/directory_service.py
import logging
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from app.models.user import User
from app.schemas.users import PartnerIdentity, UNKNOWN_NAME, UNKNOWN_EMAIL
from app.services.errors import PartnerNotFound

logger = logging.getLogger(__name__)


class DirectoryService:
    """
    User directory backed by the users table.

    Records are kept in sync with the identity provider's claims each time a
    caller authenticates, so partners can be resolved by id or by email.
    """
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by ID"""
        return self.db.query(User).filter(User.id == user_id).first()
    
    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email"""
        return self.db.query(User).filter(User.email == email.strip().lower()).first()
    
    def sync_from_claims(self, claims: Dict[str, Any]) -> User:
        """
        Create or refresh the directory record for a verified token payload.
        """
        user_id = claims["sub"]
        email = (claims.get("email") or "").strip().lower()
        user = self.get_user(user_id)
        
        if not user:
            if not email:
                raise ValueError("Token carries no email for a new user")
            user = User(
                id=user_id,
                email=email,
                name=claims.get("name"),
                picture=claims.get("picture")
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
            logger.info(f"Registered directory entry for user {user_id}")
            return user
        
        changed = False
        for key, value in (("email", email), ("name", claims.get("name")), ("picture", claims.get("picture"))):
            if value and getattr(user, key) != value:
                setattr(user, key, value)
                changed = True
        if changed:
            self.db.commit()
            self.db.refresh(user)
        return user
    
    @staticmethod
    def to_identity(user: User) -> PartnerIdentity:
        return PartnerIdentity(
            user_id=user.id,
            name=user.name or UNKNOWN_NAME,
            email=user.email or UNKNOWN_EMAIL,
            picture=user.picture
        )
    
    def resolve_partner(self, id_or_email: str) -> PartnerIdentity:
        """
        Resolve a partner by user id or email.
        
        Raises:
            PartnerNotFound: if the directory has no matching user.
        """
        if not id_or_email:
            raise PartnerNotFound("Partner user not found")
        
        if "@" in id_or_email:
            user = self.get_user_by_email(id_or_email)
        else:
            user = self.get_user(id_or_email)
        
        if not user:
            raise PartnerNotFound(f"Partner user not found for: {id_or_email}")
        return self.to_identity(user)
    
    def resolve_or_placeholder(self, user_id: str) -> PartnerIdentity:
        """
        Resolve a partner for display; any failure yields a placeholder identity.
        """
        try:
            return self.resolve_partner(user_id)
        except Exception as e:
            logger.warning(f"Error fetching partner {user_id}: {str(e)}")
            return PartnerIdentity.placeholder(user_id)
