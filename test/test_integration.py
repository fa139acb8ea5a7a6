import math
from datetime import datetime

import pytest
from httpx import AsyncClient, ASGITransport
from firebase_admin import messaging

from main import app
from swoptrader.database.models import Item, User
from swoptrader.services.firebase_messaging import PushTransport
from swoptrader.services.offer_notifications import OfferNotificationDispatcher, get_offer_dispatcher


async def create_user(client: AsyncClient, user_id: str, name: str) -> dict:
    response = await client.post("/api/v1/users", json={"id": user_id, "name": name, "email": f"{user_id}@example.com"})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_item(client: AsyncClient, item_id: str, owner_id: str, **overrides) -> dict:
    payload = {
        "id": item_id, "name": "Acoustic guitar", "description": "Six strings",
        "category": "Music", "condition": "Good", "ownerId": owner_id,
    }
    payload.update(overrides)
    response = await client.post("/api/v1/items", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


###############################################################
# Health and envelope
###############################################################

@pytest.mark.asyncio
async def test_itc_001_health_reports_database(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "OK"
    assert response.json()["database"] == "Connected"


@pytest.mark.asyncio
async def test_itc_002_unknown_route(client: AsyncClient):
    response = await client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Route not found"}


###############################################################
# Users and token registration
###############################################################

@pytest.mark.asyncio
async def test_itc_003_create_and_get_user(client: AsyncClient):
    created = await create_user(client, "u1", "Alice")
    assert created["fcmTokens"] == []
    assert created["tradeScore"] == 0
    assert created["level"] == 1

    response = await client.get("/api/v1/users/u1")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["data"]["email"] == "u1@example.com"


@pytest.mark.asyncio
async def test_itc_004_duplicate_email_conflicts(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    response = await client.post("/api/v1/users", json={"id": "u9", "name": "Copy", "email": "u1@example.com"})
    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_itc_005_unknown_user(client: AsyncClient):
    response = await client.get("/api/v1/users/ghost")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "User not found"}


@pytest.mark.asyncio
async def test_itc_006_update_user_profile(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    update = {"profileImageUrl": "https://img/alice.png", "location": {"address": "Chiang Mai"}, "tradeScore": 12}
    response = await client.put("/api/v1/users/u1", json=update)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["profileImageUrl"] == "https://img/alice.png"
    assert data["location"]["address"] == "Chiang Mai"
    assert data["tradeScore"] == 12
    assert data["name"] == "Alice"


@pytest.mark.asyncio
async def test_itc_007_leaderboard(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    await create_user(client, "u2", "Bob")
    await client.put("/api/v1/users/u2", json={"tradeScore": 50})

    response = await client.get("/api/v1/users", params={"sortBy": "tradeScore", "limit": 1})
    assert response.status_code == 200
    assert [user["id"] for user in response.json()["data"]] == ["u2"]
    assert response.json()["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}


@pytest.mark.asyncio
async def test_itc_008_register_token_validation(client: AsyncClient):
    response = await client.post("/api/v1/notifications/token", json={"userId": "u1"})
    assert response.status_code == 400
    assert "token" in response.json()["error"]

    response = await client.post("/api/v1/notifications/token", json={"userId": "ghost", "token": "t1"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_itc_009_register_token_is_idempotent(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "t1"})
    response = await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "t1"})

    assert response.status_code == 200
    assert response.json()["data"]["fcmTokens"] == ["t1"]


@pytest.mark.asyncio
async def test_itc_010_register_token_rotates_device(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "old", "deviceId": "D1"})
    response = await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "new", "deviceId": "D1"})

    data = response.json()["data"]
    assert data["deviceTokens"] == {"D1": "new"}
    assert data["fcmTokens"] == ["old", "new"]


###############################################################
# Items
###############################################################

@pytest.mark.asyncio
async def test_itc_011_item_listing_filters(client: AsyncClient, db_session):
    """Only available items matching category AND search come back, newest first."""
    db_session.add_all([
        Item(id="i1", name="Guitar chords", description="Beginner book", category="Books",
             condition="Good", owner_id="u1", created_at=datetime(2026, 1, 1)),
        Item(id="i2", name="Songbook", description="Classic GUITAR tabs", category="Books",
             condition="Fair", owner_id="u2", created_at=datetime(2026, 2, 1)),
        Item(id="i3", name="Guitar", description="Electric", category="Music",
             condition="Good", owner_id="u1", created_at=datetime(2026, 3, 1)),
        Item(id="i4", name="Guitar theory", description="Hardcover", category="Books",
             condition="Good", owner_id="u1", is_available=False, created_at=datetime(2026, 4, 1)),
    ])
    await db_session.commit()

    response = await client.get("/api/v1/items", params={"category": "Books", "search": "guitar"})
    assert response.status_code == 200
    assert [item["id"] for item in response.json()["data"]] == ["i2", "i1"]

    response = await client.get("/api/v1/items", params={"category": "Books", "search": "guitar", "limit": 1})
    pagination = response.json()["pagination"]
    assert pagination["total"] == 2
    assert pagination["pages"] == math.ceil(pagination["total"] / pagination["limit"])
    assert [item["id"] for item in response.json()["data"]] == ["i2"]

    response = await client.get("/api/v1/items", params={"ownerId": "u1"})
    assert {item["id"] for item in response.json()["data"]} == {"i1", "i3"}


@pytest.mark.asyncio
async def test_itc_012_item_soft_delete(client: AsyncClient):
    await create_item(client, "i1", "u1")

    response = await client.delete("/api/v1/items/i1")
    assert response.status_code == 200
    assert response.json()["data"]["isAvailable"] is False

    response = await client.get("/api/v1/items/i1")
    assert response.status_code == 200
    assert response.json()["data"]["isAvailable"] is False

    response = await client.get("/api/v1/items")
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_itc_013_item_update_and_missing(client: AsyncClient):
    await create_item(client, "i1", "u1")
    response = await client.put("/api/v1/items/i1", json={"condition": "Like new"})
    assert response.json()["data"]["condition"] == "Like new"

    assert (await client.put("/api/v1/items/none", json={"condition": "x"})).status_code == 404
    assert (await client.delete("/api/v1/items/none")).status_code == 404

    response = await client.post("/api/v1/items", json={"name": "No owner"})
    assert response.status_code == 400


###############################################################
# Offers and notifications
###############################################################

@pytest.mark.asyncio
async def test_itc_014_offer_scenario_notifies_recipient(client: AsyncClient, fake_transport):
    """u1 registers t1, u2 makes an offer, one push reaches t1."""
    await create_user(client, "u1", "Alice")
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "t1"})
    response = await client.get("/api/v1/users/u1")
    assert response.json()["data"]["fcmTokens"] == ["t1"]

    await create_user(client, "u2", "Bob")
    await create_item(client, "i1", "u1", name="Guitar")
    offer = {"id": "o1", "fromUserId": "u2", "toUserId": "u1", "requestedItemId": "i1", "offeredItemIds": ["i9"]}
    response = await client.post("/api/v1/offers", json=offer)

    assert response.status_code == 201
    assert response.json()["data"]["status"] == "PENDING"
    assert len(fake_transport.sent) == 1
    assert fake_transport.sent[0].tokens == ["t1"]
    assert fake_transport.sent[0].notification.title == "Bob sent you an offer"

    response = await client.post("/api/v1/notifications/offers", json={
        "offerId": "o1", "recipientUserId": "u1", "senderUserId": "u2", "senderName": "Bob",
    })
    assert response.status_code == 200
    assert response.json()["data"] == {"successCount": 1, "failureCount": 0, "invalidTokens": []}


@pytest.mark.asyncio
async def test_itc_015_offer_created_when_dispatch_fails(client: AsyncClient, dispatcher, mocker):
    await create_user(client, "u1", "Alice")
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "t1"})
    mocker.patch.object(dispatcher, "dispatch_offer_notification", side_effect=RuntimeError("FCM down"))

    offer = {"fromUserId": "u2", "toUserId": "u1", "requestedItemId": "i1"}
    response = await client.post("/api/v1/offers", json=offer)

    assert response.status_code == 201
    assert response.json()["success"] is True
    offer_id = response.json()["data"]["id"]
    assert (await client.get(f"/api/v1/offers/{offer_id}")).status_code == 200


@pytest.mark.asyncio
async def test_itc_016_offer_notification_prunes_invalid_token(client: AsyncClient, fake_transport):
    await create_user(client, "u1", "Alice")
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "good"})
    await client.post("/api/v1/notifications/token", json={"userId": "u1", "token": "stale"})
    fake_transport.failures["stale"] = messaging.UnregisteredError("Requested entity was not found.")

    response = await client.post("/api/v1/notifications/offers", json={
        "offerId": "o1", "recipientUserId": "u1", "senderUserId": "u2", "senderName": "Bob",
        "itemName": "Guitar", "message": "Swap for my bike?",
    })

    assert response.json()["data"] == {"successCount": 1, "failureCount": 1, "invalidTokens": ["stale"]}
    response = await client.get("/api/v1/users/u1")
    assert response.json()["data"]["fcmTokens"] == ["good"]


@pytest.mark.asyncio
async def test_itc_017_offer_notification_without_tokens(client: AsyncClient):
    await create_user(client, "u1", "Alice")
    response = await client.post("/api/v1/notifications/offers", json={
        "offerId": "o1", "recipientUserId": "u1", "senderUserId": "u2", "senderName": "Bob",
    })
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_itc_018_offer_notification_missing_fields(client: AsyncClient):
    response = await client.post("/api/v1/notifications/offers", json={"offerId": "o1", "recipientUserId": "u1"})
    assert response.status_code == 400
    assert "senderName" in response.json()["error"]


@pytest.mark.asyncio
async def test_itc_019_offer_notification_unconfigured(client: AsyncClient, session_factory):
    unconfigured = OfferNotificationDispatcher(PushTransport(), session_factory)
    app.dependency_overrides[get_offer_dispatcher] = lambda: unconfigured

    response = await client.post("/api/v1/notifications/offers", json={
        "offerId": "o1", "recipientUserId": "u1", "senderUserId": "u2", "senderName": "Bob",
    })

    assert response.status_code == 503
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_itc_020_offer_listing_and_update(client: AsyncClient):
    for offer_id, sender, recipient in [("o1", "u1", "u2"), ("o2", "u2", "u3"), ("o3", "u3", "u4")]:
        response = await client.post("/api/v1/offers", json={
            "id": offer_id, "fromUserId": sender, "toUserId": recipient, "requestedItemId": "i1",
        })
        assert response.status_code == 201

    response = await client.get("/api/v1/offers", params={"userId": "u2"})
    assert {offer["id"] for offer in response.json()["data"]} == {"o1", "o2"}
    assert response.json()["pagination"]["total"] == 2

    response = await client.put("/api/v1/offers/o1", json={
        "status": "ACCEPTED",
        "meetup": {"location": {"name": "Cafe"}, "scheduledAt": 1767225600000, "status": "IN_PROGRESS"},
    })
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ACCEPTED"
    assert response.json()["data"]["meetup"]["status"] == "IN_PROGRESS"

    # No transition graph: an accepted offer can go back to pending.
    response = await client.put("/api/v1/offers/o1", json={"status": "PENDING"})
    assert response.json()["data"]["status"] == "PENDING"

    response = await client.get("/api/v1/offers", params={"status": "PENDING", "userId": "u3"})
    assert {offer["id"] for offer in response.json()["data"]} == {"o2", "o3"}

    assert (await client.put("/api/v1/offers/o1", json={"status": "SOLD"})).status_code == 400
    assert (await client.get("/api/v1/offers/nope")).status_code == 404


###############################################################
# Chats, trade history, admin
###############################################################

@pytest.mark.asyncio
async def test_itc_021_chats_for_participant(client: AsyncClient):
    response = await client.post("/api/v1/chats", json={"id": "c1", "participantIds": ["u1", "u2"], "itemName": "Guitar"})
    assert response.status_code == 201
    await client.post("/api/v1/chats", json={"id": "c2", "participantIds": ["u3", "u4"]})

    response = await client.get("/api/v1/chats", params={"userId": "u1"})
    assert [chat["id"] for chat in response.json()["data"]] == ["c1"]
    assert response.json()["data"][0]["participantIds"] == ["u1", "u2"]

    response = await client.get("/api/v1/chats")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_itc_022_chat_messages_chronological(client: AsyncClient):
    created = await client.post("/api/v1/chats", json={"id": "c1", "participantIds": ["u1", "u2"]})
    created_at = created.json()["data"]["lastMessageAt"]

    for index, timestamp in enumerate(["2026-01-01T10:00:00", "2026-01-01T10:05:00", "2026-01-01T10:10:00"]):
        response = await client.post("/api/v1/chats/c1/messages", json={
            "id": f"m{index}", "senderId": "u1", "receiverId": "u2",
            "message": f"hello {index}", "timestamp": timestamp,
        })
        assert response.status_code == 201
        assert response.json()["data"]["type"] == "TEXT"

    response = await client.get("/api/v1/chats/c1/messages", params={"limit": 2})
    assert [message["id"] for message in response.json()["data"]] == ["m1", "m2"]

    response = await client.get("/api/v1/chats/c1/messages", params={"limit": 2, "page": 2})
    assert [message["id"] for message in response.json()["data"]] == ["m0"]

    response = await client.get("/api/v1/chats", params={"userId": "u1"})
    assert response.json()["data"][0]["lastMessageAt"] > created_at


@pytest.mark.asyncio
async def test_itc_023_trade_history(client: AsyncClient):
    trade = {
        "offerId": "o1",
        "participantIds": ["u1", "u2"],
        "itemsTraded": [{"itemId": "i1", "userId": "u1", "itemName": "Guitar"}],
        "completedAt": "2026-03-01T12:00:00",
        "carbonSaved": 4.5,
        "tradeScoreEarned": 10,
        "rating": {"rating": 5, "comment": "Smooth swap", "ratedBy": "u2"},
    }
    response = await client.post("/api/v1/trades/history", json=trade)
    assert response.status_code == 201

    response = await client.get("/api/v1/trades/history", params={"userId": "u2"})
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["itemsTraded"][0]["itemName"] == "Guitar"
    assert data[0]["rating"]["comment"] == "Smooth swap"

    assert (await client.get("/api/v1/trades/history", params={"userId": "u9"})).json()["data"] == []
    assert (await client.get("/api/v1/trades/history")).status_code == 400


@pytest.mark.asyncio
async def test_itc_024_cleanup_orphaned_items(client: AsyncClient, db_session):
    db_session.add(User(id="u1", name="Alice", email="alice@example.com"))
    db_session.add_all([
        Item(id="i1", name="Lamp", description="Desk", category="Home", condition="Good", owner_id="u1"),
        Item(id="i2", name="Chair", description="Oak", category="Home", condition="Good", owner_id="gone"),
        Item(id="i3", name="Table", description="Pine", category="Home", condition="Good", owner_id="gone",
             is_available=False),
    ])
    await db_session.commit()

    response = await client.delete("/api/v1/admin/cleanup-orphaned-items")
    assert response.status_code == 200
    assert response.json()["data"] == {"deletedCount": 2, "orphanedOwnerIds": ["gone"]}

    assert (await client.get("/api/v1/items/i2")).status_code == 404
    assert (await client.get("/api/v1/items/i1")).status_code == 200

    response = await client.delete("/api/v1/admin/cleanup-orphaned-items")
    assert response.json()["message"] == "No orphaned items found"


@pytest.mark.asyncio
async def test_itc_025_unexpected_error_returns_generic_500(client: AsyncClient, mocker):
    mocker.patch("swoptrader.controllers.health.ping", side_effect=RuntimeError("connection string leaked"))

    # The server error middleware re-raises after responding; keep the response instead.
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as raw_client:
        response = await raw_client.get("/health")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert "leaked" not in response.text


@pytest.mark.asyncio
async def test_itc_026_offer_message_too_long(client: AsyncClient, fake_transport):
    offer = {"fromUserId": "u2", "toUserId": "u1", "requestedItemId": "i1", "message": "x" * 1001}
    response = await client.post("/api/v1/offers", json=offer)

    assert response.status_code == 400
    assert "message" in response.json()["error"]
    assert fake_transport.sent == []
