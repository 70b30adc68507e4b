"""SQLAlchemy ORM model for the ``users`` table."""
from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Boolean, Column, String, Text
from sqlalchemy.sql import expression

from chatsync.database import Base


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    username = Column(String(150), nullable=False, index=True)
    name = Column(String(150), nullable=True)
    email = Column(String(255), nullable=True)
    avatar = Column(String(1024), nullable=True)
    description = Column(Text, nullable=True)
    birthdate = Column(String(32), nullable=True)
    gender = Column(String(32), nullable=True)
    is_private_profile = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    allow_private_chat = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    friends = Column(JSON, nullable=False, default=list)
    requests = Column(JSON, nullable=False, default=list)
    blocked_users = Column(JSON, nullable=False, default=list)
    last_seen = Column(String(64), nullable=True)
    is_deactivated = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    instagram_link = Column(String(1024), nullable=True)
    is_premium = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    premium_expiry = Column(BigInteger, nullable=True)


__all__ = ["UserRow"]
