# app/models/user.py
from sqlalchemy import Column, String

from app.database import Base
from app.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """
    Directory record for a marketplace user.
    The id is the identity provider's subject claim.
    """
    __tablename__ = "users"
    
    id = Column(String(128), primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    picture = Column(String(512), nullable=True)
    
    def __repr__(self):
        return f"<User {self.id} - {self.email}>"
    