"""SQLAlchemy ORM model for the ``messages`` table."""
from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Column, String, Text
from sqlalchemy.sql import expression

from chatsync.database import Base


class MessageRow(Base):
    __tablename__ = "messages"

    id = Column(String(64), primary_key=True)
    sender_id = Column(String(64), nullable=False, index=True)
    # No foreign key: receiver_id may hold the broadcast sentinel.
    receiver_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    timestamp = Column(BigInteger, nullable=False, index=True)
    read = Column(Boolean, nullable=False, server_default=expression.false(), default=False)


__all__ = ["MessageRow"]
