import uuid

from sqlalchemy import Boolean, Column, DateTime, String

from app.core.database import Base
from app.utils.timeutils import utcnow

ROLE_USER = "user"
ROLE_SUPERUSER = "superuser"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String(30), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_USER)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_SUPERUSER

    def __repr__(self) -> str:
        return f"<User {self.username} (ID: {self.id})>"
