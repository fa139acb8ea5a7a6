from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.connection import get_db
from swoptrader.models.notification import TokenRegistrationRequest, OfferNotificationRequest, DispatchSkipped
from swoptrader.models.user import UserResponse
from swoptrader.services import token_registry
from swoptrader.services.offer_notifications import OfferNotificationDispatcher, get_offer_dispatcher
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.post("/token")
async def register_push_token(
        registration: TokenRegistrationRequest,
        db: AsyncSession = Depends(get_db),
):
    """
    Adds a device push token to the user's token set. Registering the same
    token again is a no-op; a known deviceId is re-pointed at the new token.
    """
    user = await token_registry.register_token(
        db, registration.user_id, registration.token, registration.device_id
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return envelope(UserResponse.model_validate(user))


@router.post("/offers")
async def send_offer_notification(
        notification: OfferNotificationRequest,
        dispatcher: OfferNotificationDispatcher = Depends(get_offer_dispatcher),
):
    """
    Sends the new-offer push to every registered device of the recipient.
    A missing Firebase credential surfaces as 503 from the app's error handler.
    """
    result = await dispatcher.dispatch_offer_notification(
        offer_id=notification.offer_id,
        recipient_user_id=notification.recipient_user_id,
        sender_user_id=notification.sender_user_id,
        sender_name=notification.sender_name,
        item_name=notification.item_name,
        message=notification.message,
    )
    if isinstance(result, DispatchSkipped):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recipient has no registered push tokens",
        )
    return envelope(result)
