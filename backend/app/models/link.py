import secrets

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.access.policies import (
    SCOPE_PUBLIC,
    SCOPE_SELECTED,
    SCOPE_USERS,
    VERIFICATION_NONE,
    VERIFICATION_PASSWORD,
    VERIFICATION_USERNAME,
    AudienceScope,
    AuthenticatedAudience,
    NoVerification,
    PasswordVerification,
    PublicAudience,
    SelectedUsersAudience,
    UsernameVerification,
    VerificationPolicy,
)
from app.core.database import Base
from app.utils.timeutils import utcnow


def generate_link_id() -> str:
    return secrets.token_hex(16)


link_allowed_users = Table(
    "link_allowed_users",
    Base.metadata,
    Column("link_id", String(32), ForeignKey("links.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Link(Base):
    __tablename__ = "links"
    __table_args__ = (
        CheckConstraint(
            "(verification_kind = 'none' AND verification_value IS NULL) OR "
            "(verification_kind IN ('password', 'username') AND verification_value IS NOT NULL)",
            name="ck_links_verification_pair",
        ),
        CheckConstraint(
            "audience_scope IN ('public', 'users', 'selected')",
            name="ck_links_audience_scope",
        ),
        CheckConstraint(
            "access_limit IS NULL OR access_limit > 0",
            name="ck_links_access_limit_positive",
        ),
    )

    id = Column(String(32), primary_key=True, default=generate_link_id)
    display_name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(String(500), nullable=True)
    file_id = Column(String(36), ForeignKey("files.id"), nullable=False, index=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    expires_at = Column(DateTime, nullable=True, index=True)
    access_limit = Column(Integer, nullable=True)
    current_access_count = Column(Integer, nullable=False, default=0)

    verification_kind = Column(String(16), nullable=False, default=VERIFICATION_NONE)
    verification_value = Column(String, nullable=True)
    audience_scope = Column(String(16), nullable=False, default=SCOPE_PUBLIC)

    download_allowed = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    deactivated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    file = relationship("File", back_populates="links")
    owner = relationship("User")
    allowed_users = relationship("User", secondary=link_allowed_users, lazy="selectin")

    @property
    def verification(self) -> VerificationPolicy:
        if self.verification_kind == VERIFICATION_PASSWORD:
            return PasswordVerification(secret_hash=self.verification_value)
        if self.verification_kind == VERIFICATION_USERNAME:
            return UsernameVerification(expected=self.verification_value)
        return NoVerification()

    @verification.setter
    def verification(self, policy: VerificationPolicy) -> None:
        self.verification_kind = policy.kind
        if isinstance(policy, PasswordVerification):
            self.verification_value = policy.secret_hash
        elif isinstance(policy, UsernameVerification):
            self.verification_value = policy.expected
        else:
            self.verification_value = None

    @property
    def audience(self) -> AudienceScope:
        if self.audience_scope == SCOPE_SELECTED:
            return SelectedUsersAudience(user_ids=frozenset(u.id for u in self.allowed_users))
        if self.audience_scope == SCOPE_USERS:
            return AuthenticatedAudience()
        return PublicAudience()

    def __repr__(self) -> str:
        return f"<Link {self.display_name} (ID: {self.id})>"


class LinkAccessLog(Base):
    """One granted access. ``seq`` equals the link's access count after it."""

    __tablename__ = "link_access_logs"
    __table_args__ = (
        UniqueConstraint("link_id", "seq", name="uq_link_access_logs_link_seq"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(String(32), ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    requester_id = Column(String(36), nullable=True)
    source_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    accessed_at = Column(DateTime, default=utcnow, nullable=False)
