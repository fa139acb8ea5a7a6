"""
Push notifications for new trade offers.

A dispatch reads the recipient's token set, sends one multicast per batch of
at most 500 tokens, counts successes and failures across batches, and prunes
tokens the provider reports as unregistered or malformed.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional, Union

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from swoptrader.database.models import Item
from swoptrader.models.notification import DispatchResult, DispatchSkipped
from swoptrader.models.offer import OfferResponse
from swoptrader.services import token_registry
from swoptrader.services.firebase_messaging import PushNotConfiguredError, PushTransport
from swoptrader.services.users import fetch_user_name

logger = logging.getLogger(__name__)

# Provider limit for tokens in one multicast call.
MAX_MULTICAST_TOKENS = 500
MAX_BODY_LENGTH = 140
# Keeps the data payload well under the 4 KB FCM limit.
MAX_DATA_MESSAGE_LENGTH = 1000
ANDROID_CHANNEL_ID = "offers"
APNS_CATEGORY = "OFFER"
DEFAULT_SENDER_NAME = "Someone"


def chunk_tokens(tokens: List[str], size: int = MAX_MULTICAST_TOKENS) -> List[List[str]]:
    return [tokens[i:i + size] for i in range(0, len(tokens), size)]


def is_invalid_token_error(error: Optional[Exception]) -> bool:
    """
    True for failures that will never succeed for this token: unregistered,
    bound to another sender, or malformed. INVALID_ARGUMENT is also returned
    for payload problems, so it only counts when it names the registration token.
    """
    if isinstance(error, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return True
    if isinstance(error, firebase_exceptions.InvalidArgumentError):
        return "registration token" in str(error).lower()
    return False


def build_offer_message(
        tokens: List[str],
        offer_id: str,
        recipient_user_id: str,
        sender_user_id: str,
        sender_name: str,
        item_name: Optional[str] = None,
        message: Optional[str] = None,
) -> messaging.MulticastMessage:
    title = f"{sender_name} sent you an offer"
    if message:
        body = message[:MAX_BODY_LENGTH]
    else:
        body = f"New pitch on {item_name or 'your item'}"

    # FCM data payloads only carry string values.
    data = {
        "type": "offer",
        "offerId": offer_id,
        "senderId": sender_user_id,
        "senderName": sender_name,
        "recipientId": recipient_user_id,
        "itemName": item_name,
        "message": message[:MAX_DATA_MESSAGE_LENGTH] if message else None,
    }
    data = {key: "" if value is None else str(value) for key, value in data.items()}

    # Same tag / collapse id per offer so a repeat replaces the earlier notification.
    tag = f"offer_{offer_id}"
    return messaging.MulticastMessage(
        tokens=tokens,
        notification=messaging.Notification(title=title, body=body),
        data=data,
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(
                channel_id=ANDROID_CHANNEL_ID,
                sound="default",
                tag=tag,
            ),
        ),
        apns=messaging.APNSConfig(
            headers={"apns-priority": "10", "apns-collapse-id": tag},
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound="default", category=APNS_CATEGORY, thread_id=tag),
            ),
        ),
    )


class OfferNotificationDispatcher:
    def __init__(self, transport: PushTransport, session_factory: Callable[[], Any]):
        """
        `session_factory` returns an async context manager yielding an
        AsyncSession; each lookup and the pruning step get their own session.
        """
        self.transport = transport
        self.session_factory = session_factory

    async def dispatch_offer_notification(
            self,
            offer_id: str,
            recipient_user_id: str,
            sender_user_id: str,
            sender_name: str,
            item_name: Optional[str] = None,
            message: Optional[str] = None,
    ) -> Union[DispatchResult, DispatchSkipped]:
        """
        Raises PushNotConfiguredError when there is no credential. Returns
        DispatchSkipped when the recipient has no tokens, otherwise the
        aggregated DispatchResult.
        """
        if not self.transport.configured:
            raise PushNotConfiguredError("Push notifications are not configured")

        async with self.session_factory() as db:
            tokens = await token_registry.get_tokens(db, recipient_user_id)

        tokens = list(dict.fromkeys(tokens))
        if not tokens:
            logger.info(f"Offer {offer_id}: recipient {recipient_user_id} has no push tokens, skipping.")
            return DispatchSkipped()

        result = DispatchResult()
        for batch in chunk_tokens(tokens):
            multicast = build_offer_message(
                batch, offer_id, recipient_user_id, sender_user_id, sender_name, item_name, message
            )
            response = await run_in_threadpool(self.transport.send_multicast, multicast)
            result.success_count += response.success_count
            result.failure_count += response.failure_count

            for token, send_response in zip(batch, response.responses):
                if send_response.success:
                    continue
                if is_invalid_token_error(send_response.exception):
                    result.invalid_tokens.append(token)
                else:
                    logger.warning(f"Offer {offer_id}: delivery failed for one token: {send_response.exception}")

        if result.invalid_tokens:
            await self._prune_tokens(recipient_user_id, result.invalid_tokens)

        logger.info(
            f"Offer {offer_id} notification to {recipient_user_id}: "
            f"{result.success_count} sent, {result.failure_count} failed, "
            f"{len(result.invalid_tokens)} invalid token(s) pruned."
        )
        return result

    async def _prune_tokens(self, user_id: str, tokens: List[str]) -> None:
        try:
            async with self.session_factory() as db:
                await token_registry.remove_tokens(db, user_id, tokens)
        except Exception as e:
            logger.error(f"Failed to prune {len(tokens)} invalid token(s) for user {user_id}: {e}")

    async def _lookup_sender_name(self, user_id: str) -> Optional[str]:
        async with self.session_factory() as db:
            return await fetch_user_name(db, user_id)

    async def _lookup_item_name(self, item_id: str) -> Optional[str]:
        async with self.session_factory() as db:
            item = await db.get(Item, item_id)
            return item.name if item else None

    async def queue_offer_notification_for_offer(self, offer: OfferResponse) -> None:
        """
        Fire-and-forget notification for a freshly created offer. Every failure
        is logged here; nothing is raised back to the offer request.
        """
        try:
            sender_name, item_name = await asyncio.gather(
                self._lookup_sender_name(offer.from_user_id),
                self._lookup_item_name(offer.requested_item_id),
            )
            await self.dispatch_offer_notification(
                offer_id=offer.id,
                recipient_user_id=offer.to_user_id,
                sender_user_id=offer.from_user_id,
                sender_name=sender_name or DEFAULT_SENDER_NAME,
                item_name=item_name,
                message=offer.message,
            )
        except PushNotConfiguredError:
            logger.warning(f"Offer {offer.id}: push notifications are not configured, notification dropped.")
        except Exception:
            logger.exception(f"Offer {offer.id}: notification dispatch failed.")


def get_offer_dispatcher(request: Request) -> OfferNotificationDispatcher:
    return request.app.state.offer_dispatcher
