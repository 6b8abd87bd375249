"""SQLAlchemy ORM models for profiles, matches, call credits and call sessions"""

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    Text,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class User(Base):
    """Account record; phone is the real number and never leaves the backend"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    phone = Column(String(20), nullable=True)
    role = Column(Text, nullable=False, default="user")
    status = Column(Text, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    profile = relationship("UserProfile", back_populates="user", uselist=False)
    location = relationship("UserLocation", uselist=False)


class UserProfile(Base):
    """Matrimonial profile, moderated by admins before it becomes searchable"""

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    gender = Column(Text, nullable=True)
    age = Column(Integer, nullable=True)
    religion = Column(Text, nullable=True)
    caste = Column(Text, nullable=True)
    education = Column(Text, nullable=True)
    mother_tongue = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    occupation = Column(Text, nullable=True)
    marital_status = Column(Text, nullable=True)
    profile_photo = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="profile")


class UserLocation(Base):
    """Last known coordinates of a user"""

    __tablename__ = "user_locations"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)


class UserMatch(Base):
    """Directed match row; admins create one per direction"""

    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("user_id", "matched_user_id", name="uq_match_pair"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    matched_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class UserCallCredit(Base):
    """Prepaid call credits bought with a call plan"""

    __tablename__ = "user_call_credits"
    __table_args__ = (CheckConstraint("credits_remaining >= 0", name="ck_credits_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_name = Column(Text, nullable=True)
    credits_remaining = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CallSessionRecord(Base):
    """Masked call session driven by provider status callbacks"""

    __tablename__ = "call_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    caller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider_call_id = Column(Text, nullable=False, unique=True)
    status = Column(Text, nullable=False, default="initiated")
    caller_virtual_number = Column(String(20), nullable=False)
    receiver_virtual_number = Column(String(20), nullable=False)
    caller_real_number = Column(String(20), nullable=False)
    receiver_real_number = Column(String(20), nullable=False)
    cost_per_minute = Column(Integer, nullable=False, default=1)
    duration_seconds = Column(Integer, nullable=False, default=0)
    cost = Column(Integer, nullable=False, default=0)
    recording_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    caller = relationship("User", foreign_keys=[caller_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
    logs = relationship("CallLog", back_populates="session", cascade="all, delete-orphan")


class CallLog(Base):
    """Append-only per-participant record of a completed call"""

    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    other_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    call_session_id = Column(Integer, ForeignKey("call_sessions.id", ondelete="CASCADE"), nullable=False)
    direction = Column(Text, nullable=False)  # incoming | outgoing
    duration_seconds = Column(Integer, nullable=False)
    cost = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    session = relationship("CallSessionRecord", back_populates="logs")
    other_user = relationship("User", foreign_keys=[other_user_id])
