import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, JSON, ForeignKey, Float, DateTime, Index, UniqueConstraint
)


def generate_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Base class for all models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id = Column(String(255), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(320), unique=True, nullable=False)
    profile_image_url = Column(Text, nullable=True)
    location = Column(JSON, nullable=True)
    trade_score = Column(Float, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    carbon_saved = Column(Float, default=0, nullable=False)
    last_active_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    push_tokens = relationship(
        "PushToken", back_populates="user", cascade="all, delete-orphan",
        lazy="selectin", order_by="PushToken.id",
    )
    devices = relationship(
        "UserDevice", back_populates="user", cascade="all, delete-orphan", lazy="selectin",
    )

    __table_args__ = (
        Index("ix_users_trade_score", trade_score.desc()),
        Index("ix_users_level", level.desc()),
        Index("ix_users_carbon_saved", carbon_saved.desc()),
        Index("ix_users_created_at", created_at.desc()),
    )

    @property
    def fcm_tokens(self) -> list[str]:
        return [push_token.token for push_token in self.push_tokens]

    @property
    def device_tokens(self) -> dict[str, str]:
        return {device.device_id: device.token for device in self.devices}


class PushToken(Base):
    """One entry of a user's token set. The unique constraint gives add-to-set semantics."""
    __tablename__ = "push_tokens"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    user = relationship("User", back_populates="push_tokens")
    __table_args__ = (UniqueConstraint("user_id", "token", name="_user_push_token_uc"),)


class UserDevice(Base):
    """Current token bound to a device; re-registering the device overwrites it."""
    __tablename__ = "user_devices"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    device_id = Column(String(255), nullable=False)
    token = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    user = relationship("User", back_populates="devices")
    __table_args__ = (UniqueConstraint("user_id", "device_id", name="_user_device_uc"),)


class Item(Base):
    __tablename__ = "items"
    id = Column(String(255), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    condition = Column(String(100), nullable=False)
    images = Column(JSON, default=list, nullable=False)
    # Not a foreign key: dangling owners are reconciled by the orphaned-item sweep.
    owner_id = Column(String(255), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_items_owner_id", owner_id),
        Index("ix_items_category", category),
        Index("ix_items_is_available", is_available),
        Index("ix_items_created_at", created_at.desc()),
        Index("ix_items_owner_available", owner_id, is_available),
    )


class Offer(Base):
    __tablename__ = "offers"
    id = Column(String(255), primary_key=True, default=generate_id)
    from_user_id = Column(String(255), nullable=False)
    to_user_id = Column(String(255), nullable=False)
    requested_item_id = Column(String(255), nullable=False)
    offered_item_ids = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="PENDING", nullable=False)
    message = Column(Text, nullable=True)
    cash_amount = Column(Float, nullable=True)
    meetup = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_offers_from_user_id", from_user_id),
        Index("ix_offers_to_user_id", to_user_id),
        Index("ix_offers_status", status),
        Index("ix_offers_requested_item_id", requested_item_id),
        Index("ix_offers_created_at", created_at.desc()),
        Index("ix_offers_from_user_status", from_user_id, status),
        Index("ix_offers_to_user_status", to_user_id, status),
    )


class Chat(Base):
    __tablename__ = "chats"
    id = Column(String(255), primary_key=True, default=generate_id)
    offer_id = Column(String(255), nullable=True)
    item_id = Column(String(255), nullable=True)
    item_name = Column(String(255), nullable=True)
    last_message_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    participants = relationship(
        "ChatParticipant", back_populates="chat", cascade="all, delete-orphan",
        lazy="selectin", order_by="ChatParticipant.id",
    )

    __table_args__ = (
        Index("ix_chats_last_message_at", last_message_at.desc()),
        Index("ix_chats_created_at", created_at.desc()),
    )

    @property
    def participant_ids(self) -> list[str]:
        return [participant.user_id for participant in self.participants]


class ChatParticipant(Base):
    __tablename__ = "chat_participants"
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(255), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    chat = relationship("Chat", back_populates="participants")
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="_chat_participant_uc"),)


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    id = Column(String(255), primary_key=True, default=generate_id)
    chat_id = Column(String(255), nullable=False)
    trade_id = Column(String(255), nullable=True)
    sender_id = Column(String(255), nullable=False)
    receiver_id = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    type = Column(String(20), default="TEXT", nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_chat_id", chat_id),
        Index("ix_chat_messages_sender_id", sender_id),
        Index("ix_chat_messages_timestamp", timestamp.desc()),
        Index("ix_chat_messages_chat_timestamp", chat_id, timestamp.desc()),
    )


class TradeHistory(Base):
    __tablename__ = "trade_history"
    id = Column(String(255), primary_key=True, default=generate_id)
    offer_id = Column(String(255), nullable=False)
    items_traded = Column(JSON, default=list, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)
    meetup_id = Column(String(255), nullable=True)
    carbon_saved = Column(Float, default=0, nullable=False)
    trade_score_earned = Column(Float, default=0, nullable=False)
    rating = Column(JSON, nullable=True)

    participants = relationship(
        "TradeParticipant", back_populates="trade", cascade="all, delete-orphan",
        lazy="selectin", order_by="TradeParticipant.id",
    )

    __table_args__ = (
        Index("ix_trade_history_offer_id", offer_id),
        Index("ix_trade_history_completed_at", completed_at.desc()),
        Index("ix_trade_history_carbon_saved", carbon_saved.desc()),
    )

    @property
    def participant_ids(self) -> list[str]:
        return [participant.user_id for participant in self.participants]


class TradeParticipant(Base):
    __tablename__ = "trade_participants"
    id = Column(Integer, primary_key=True, autoincrement=True)
    trade_id = Column(String(255), ForeignKey("trade_history.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    trade = relationship("TradeHistory", back_populates="participants")
    __table_args__ = (UniqueConstraint("trade_id", "user_id", name="_trade_participant_uc"),)
