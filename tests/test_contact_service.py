import asyncio

import pytest

from conftest import make_assignment, make_user, seed
from marketplace.errors import Forbidden, NotFound
from marketplace.models import Payment
from marketplace.services import contact_service
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import SqlGateway


class Sender:
    def __init__(self, delivered=True):
        self.delivered = delivered
        self.sent = []

    async def __call__(self, chat_id, text):
        self.sent.append((chat_id, text))
        return self.delivered


def test_whatsapp_link_carries_prefilled_message():
    assignment = make_assignment(make_user(), id="0f3c2a9e-1111-2222-3333-abcdef123456")

    contact = contact_service.build_contact(assignment)

    assert contact["platform"] == "WhatsApp"
    assert contact["link"].startswith("https://wa.me/447700900123?text=")
    assert "Order ID: ef123456" in contact["message"]
    assert "Modern History" in contact["message"]


def test_email_link_uses_subject_and_body_templates():
    assignment = make_assignment(
        make_user(), id="0f3c2a9e-1111-2222-3333-abcdef123456", platform="Email", platform_contact=""
    )

    contact = contact_service.build_contact(assignment)

    assert contact["link"].startswith("mailto:student-0001@example.com?subject=ApeAcademy%20Order%20%23ef123456")
    assert contact["message"].startswith("Hi Ada Student,")


@pytest.mark.parametrize(
    "platform, handle, link",
    [
        ("Snapchat", "@ada.snaps", "https://www.snapchat.com/add/ada.snaps"),
        ("Telegram", "@ada_tg", "https://t.me/ada_tg"),
        ("Telegram", "123456789", None),
        ("Instagram", "ada.insta", "https://ig.me/m/ada.insta"),
        ("Discord", "ada#0001", None),
    ],
)
def test_platform_links(platform, handle, link):
    assignment = make_assignment(make_user(), id="a" * 36, platform=platform, platform_contact=handle)

    assert contact_service.build_contact(assignment, text="hello")["link"] == link


def test_message_student_delivers_to_telegram_chat(session_factory):
    user = make_user()
    admin = make_user("admin-0001", role="admin")
    assignment = make_assignment(user, platform="Telegram", platform_contact="123456789")
    asyncio.run(seed(session_factory, user, admin, assignment))
    sender = Sender()

    async def scenario():
        async with session_factory() as db:
            gateway = SqlGateway(db)
            result = await contact_service.message_student(
                gateway, assignment.id, admin, "Your essay is ready", sender=sender
            )
            return result, await ActivityLogService(gateway).list_recent()

    result, logs = asyncio.run(scenario())
    assert result["delivered"] is True
    assert sender.sent == [(123456789, "Your essay is ready")]
    assert logs[0].type == "student_contacted"
    assert logs[0].details == {"platform": "Telegram", "delivered": True}


def test_message_student_requires_admin_and_assignment(session_factory):
    user = make_user()
    admin = make_user("admin-0001", role="admin")
    assignment = make_assignment(user)
    asyncio.run(seed(session_factory, user, admin, assignment))

    async def message(actor, assignment_id):
        async with session_factory() as db:
            return await contact_service.message_student(SqlGateway(db), assignment_id, actor, sender=Sender())

    with pytest.raises(Forbidden):
        asyncio.run(message(user, assignment.id))
    with pytest.raises(NotFound):
        asyncio.run(message(admin, "missing"))

    result = asyncio.run(message(admin, assignment.id))
    assert result["delivered"] is False
    assert result["link"].startswith("https://wa.me/")


def test_payment_notification_only_for_telegram_chats():
    sender = Sender()
    user = make_user()
    payment = Payment(amount=24.0, currency="GBP", transaction_reference="APE-xyz")
    telegram = make_assignment(user, id="b" * 36, platform="Telegram", platform_contact="42")
    whatsapp = make_assignment(user, id="c" * 36)

    asyncio.run(contact_service.notify_payment_completed(telegram, payment, sender=sender))
    asyncio.run(contact_service.notify_payment_completed(whatsapp, payment, sender=sender))

    assert len(sender.sent) == 1
    chat_id, text = sender.sent[0]
    assert chat_id == 42
    assert "£24.00" in text
    assert "APE-xyz" in text
    assert "Your essay for Modern History" in text
