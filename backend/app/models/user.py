"""
User Model - Directory Records

Purpose: the user directory the calling core consults and annotates.

Key Fields:
- `role`: doctor, employee or admin. Authoritative over the role a client announces.
- `is_online` / `socket_id`: presence flags written when a connection joins or leaves
- `last_seen`: last join, leave or heartbeat
"""
from sqlalchemy import Column, String, DateTime, Boolean, CheckConstraint
from datetime import datetime
import uuid

from .database import Base


class User(Base):
    """User directory entry"""
    __tablename__ = "users"

    # Primary key
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Profile
    email = Column(String(255), unique=True, nullable=True, index=True)
    username = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default='employee')

    # Presence
    is_online = Column(Boolean, default=False, index=True)
    socket_id = Column(String(64), nullable=True)
    last_seen = Column(DateTime, default=datetime.utcnow, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('doctor', 'employee', 'admin')", name='ck_user_role'),
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or self.email or self.id

    def set_online(self, socket_id: str):
        """Mark user as online on the given connection"""
        self.is_online = True
        self.socket_id = socket_id
        self.last_seen = datetime.utcnow()

    def set_offline(self):
        """Mark user as offline"""
        self.is_online = False
        self.socket_id = None
        self.last_seen = datetime.utcnow()

    def __repr__(self):
        return f"<User {self.email or self.id[:8]} ({self.role})>"
