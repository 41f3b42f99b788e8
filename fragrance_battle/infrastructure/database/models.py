"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSON, UUID
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    collections = relationship(
        "CollectionModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    battles = relationship(
        "BattleModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    votes = relationship("VoteModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    feedback = relationship(
        "AIFeedbackModel", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class FragranceModel(Base):
    __tablename__ = "fragrances"
    __table_args__ = (
        CheckConstraint("community_rating >= 0 AND community_rating <= 5", name="ck_community_rating"),
        Index("ix_fragrances_brand_name", "brand", "name"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    brand = Column(String(255), nullable=False, index=True)
    year = Column(Integer, nullable=True)
    concentration = Column(String(50), nullable=True)
    top_notes = Column(ARRAY(String), default=list, nullable=False)
    middle_notes = Column(ARRAY(String), default=list, nullable=False)
    base_notes = Column(ARRAY(String), default=list, nullable=False)
    community_rating = Column(Float, default=0.0, nullable=False)
    popularity_score = Column(Float, default=0.0, nullable=False, index=True)
    ai_seasons = Column(ARRAY(String), default=list, nullable=False)
    ai_occasions = Column(ARRAY(String), default=list, nullable=False)
    ai_moods = Column(ARRAY(String), default=list, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    market_priority = Column(Float, default=0.0, nullable=False)
    trending = Column(Boolean, default=False, nullable=False)
    target_demographic = Column(String(50), nullable=True)
    data_quality_score = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CollectionModel(Base):
    __tablename__ = "collections"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("UserModel", back_populates="collections")
    items = relationship(
        "CollectionItemModel",
        back_populates="collection",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CollectionItemModel.created_at",
    )


class CollectionItemModel(Base):
    __tablename__ = "collection_items"
    __table_args__ = (
        UniqueConstraint("collection_id", "fragrance_id", name="uq_collection_fragrance"),
        CheckConstraint("personal_rating BETWEEN 1 AND 10", name="ck_personal_rating"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    collection_id = Column(
        UUID(as_uuid=True), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fragrance_id = Column(
        UUID(as_uuid=True), ForeignKey("fragrances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    personal_rating = Column(Integer, nullable=True)
    personal_notes = Column(Text, nullable=True)
    bottle_size = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    collection = relationship("CollectionModel", back_populates="items")
    fragrance = relationship("FragranceModel", lazy="selectin")


class BattleModel(Base):
    __tablename__ = "battles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="ACTIVE", nullable=False, index=True)  # ACTIVE|COMPLETED|CANCELLED
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("UserModel", back_populates="battles")
    items = relationship(
        "BattleItemModel",
        back_populates="battle",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BattleItemModel.position",
    )
    votes = relationship(
        "VoteModel", back_populates="battle", cascade="all, delete-orphan", passive_deletes=True
    )


class BattleItemModel(Base):
    __tablename__ = "battle_items"
    __table_args__ = (UniqueConstraint("battle_id", "fragrance_id", name="uq_battle_fragrance"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    battle_id = Column(UUID(as_uuid=True), ForeignKey("battles.id", ondelete="CASCADE"), nullable=False, index=True)
    fragrance_id = Column(
        UUID(as_uuid=True), ForeignKey("fragrances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    vote_count = Column(Integer, default=0, nullable=False)
    winner = Column(Boolean, default=False, nullable=False)

    battle = relationship("BattleModel", back_populates="items")
    fragrance = relationship("FragranceModel", lazy="selectin")


class VoteModel(Base):
    __tablename__ = "votes"
    __table_args__ = (UniqueConstraint("user_id", "battle_id", name="uq_user_battle_vote"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    battle_id = Column(UUID(as_uuid=True), ForeignKey("battles.id", ondelete="CASCADE"), nullable=False, index=True)
    fragrance_id = Column(
        UUID(as_uuid=True), ForeignKey("fragrances.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("UserModel", back_populates="votes", lazy="selectin")
    battle = relationship("BattleModel", back_populates="votes")


class AIFeedbackModel(Base):
    __tablename__ = "ai_feedback"
    __table_args__ = (Index("ix_ai_feedback_type", "feedback_type"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    fragrance_id = Column(
        UUID(as_uuid=True), ForeignKey("fragrances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    feedback_type = Column(String(20), nullable=False)  # season|occasion|mood
    ai_suggestion = Column(JSON, nullable=False, default=dict)
    user_correction = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("UserModel", back_populates="feedback")
    fragrance = relationship("FragranceModel", lazy="selectin")
