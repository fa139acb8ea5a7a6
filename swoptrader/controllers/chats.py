from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from swoptrader.database.connection import get_db
from swoptrader.database.models import Chat, ChatParticipant, ChatMessage
from swoptrader.models.chat import ChatCreate, ChatResponse, ChatMessageCreate, ChatMessageResponse
from swoptrader.utils.pagination import page_offset
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.get("")
async def list_chats(user_id: str = Query(..., alias="userId", min_length=1), db: AsyncSession = Depends(get_db)):
    """Active chats the user takes part in, most recent activity first."""
    stmt = (
        select(Chat)
        .join(ChatParticipant)
        .where(ChatParticipant.user_id == user_id, Chat.is_active.is_(True))
        .order_by(Chat.last_message_at.desc())
    )
    result = await db.execute(stmt)
    chats = [ChatResponse.model_validate(chat) for chat in result.scalars().unique().all()]
    return envelope(chats)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_chat(chat_in: ChatCreate, db: AsyncSession = Depends(get_db)):
    participant_ids = list(dict.fromkeys(chat_in.participant_ids))
    db_chat = Chat(
        **chat_in.model_dump(exclude={"participant_ids"}, exclude_none=True),
        participants=[ChatParticipant(user_id=user_id) for user_id in participant_ids],
    )
    db.add(db_chat)
    await db.commit()
    return envelope(ChatResponse.model_validate(db_chat))


@router.get("/{chat_id}/messages")
async def list_messages(
        chat_id: str,
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1),
        db: AsyncSession = Depends(get_db),
):
    """Page 1 is the newest `limit` messages; each page is returned oldest first."""
    stmt = (
        select(ChatMessage)
        .where(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.timestamp.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    result = await db.execute(stmt)
    messages = [ChatMessageResponse.model_validate(message) for message in result.scalars().all()]
    messages.reverse()
    return envelope(messages)


@router.post("/{chat_id}/messages", status_code=status.HTTP_201_CREATED)
async def create_message(chat_id: str, message_in: ChatMessageCreate, db: AsyncSession = Depends(get_db)):
    data = message_in.model_dump(exclude_none=True)
    data["type"] = message_in.type.value
    db_message = ChatMessage(**data, chat_id=chat_id)
    db.add(db_message)
    await db.commit()
    await db.refresh(db_message)

    await db.execute(
        update(Chat).where(Chat.id == chat_id).values(last_message_at=datetime.now(timezone.utc))
    )
    await db.commit()
    return envelope(ChatMessageResponse.model_validate(db_message))
