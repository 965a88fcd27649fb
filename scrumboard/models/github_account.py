# scrumboard/models/github_account.py
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from scrumboard.core.db import Base

GITHUB_PROVIDER = "github"


class GitHubAccount(Base):
    """OAuth credential of a user for an upstream provider."""

    __tablename__ = "github_accounts"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_github_accounts_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    provider = Column(String, nullable=False, default=GITHUB_PROVIDER)
    provider_account_id = Column(String, nullable=True)   # GitHub user id as string

    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    expires_at = Column(Integer, nullable=True)           # epoch seconds, NULL = never expires
    refresh_token_expires_in = Column(Integer, nullable=True)
    token_type = Column(String, nullable=True)            # e.g. "bearer"
    scope = Column(String, nullable=True)                 # e.g. "repo read:user"

    user = relationship("User", backref="github_accounts")
