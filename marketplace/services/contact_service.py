"""Reaching a student on the delivery platform they picked at submission."""

import logging
import re
from typing import Optional
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader

from marketplace import config
from marketplace.constants import ActivityType, money
from marketplace.errors import Forbidden, NotFound
from marketplace.models import Assignment, Payment, User
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import PersistenceGateway
from telegram_bot.notify import send_telegram_message

templates = Environment(
    loader=FileSystemLoader(str(config.BASE_DIR / "templates" / "messages")),
    autoescape=False,
)


def order_id(assignment: Assignment) -> str:
    return assignment.id[-8:]


def render(template_name: str, **context) -> str:
    return templates.get_template(template_name).render(**context).strip()


def telegram_chat_id(assignment: Assignment) -> Optional[int]:
    """Numeric chat ids can be messaged directly; @usernames only get a link."""
    if assignment.platform != "Telegram":
        return None
    contact = (assignment.platform_contact or "").strip()
    if re.fullmatch(r"-?\d+", contact):
        return int(contact)
    return None


def build_contact(assignment: Assignment, text: Optional[str] = None) -> dict:
    context = {"a": assignment, "order_id": order_id(assignment)}
    message = text or render("order_contact.txt", **context)
    contact = (assignment.platform_contact or "").strip()
    handle = contact.lstrip("@")
    platform = assignment.platform
    link = None

    if platform == "WhatsApp":
        number = re.sub(r"[^0-9]", "", contact)
        link = f"https://wa.me/{number}?text={quote(message)}"
    elif platform == "Email":
        address = contact or assignment.user_email
        message = text or render("email_body.txt", **context)
        subject = render("email_subject.txt", **context)
        link = f"mailto:{address}?subject={quote(subject)}&body={quote(message)}"
    elif platform == "Snapchat":
        link = f"https://www.snapchat.com/add/{quote(handle)}"
    elif platform == "Telegram":
        if telegram_chat_id(assignment) is None:
            link = f"https://t.me/{quote(handle)}"
    elif platform == "Instagram":
        link = f"https://ig.me/m/{quote(handle)}"

    return {"platform": platform, "link": link, "message": message}


async def message_student(
    gateway: PersistenceGateway,
    assignment_id: str,
    actor: Optional[User],
    text: Optional[str] = None,
    sender=send_telegram_message,
) -> dict:
    """Prepare (and for Telegram chat ids, deliver) a message to the student."""
    if actor is None or not actor.is_admin:
        raise Forbidden("Forbidden: admin only")
    assignment = await gateway.get_assignment(assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")

    contact = build_contact(assignment, text)
    chat_id = telegram_chat_id(assignment)
    delivered = False
    if chat_id is not None:
        delivered = await sender(chat_id, contact["message"])

    await ActivityLogService(gateway).record(
        ActivityType.STUDENT_CONTACTED,
        f"Student contacted via {assignment.platform} about order #{order_id(assignment)}"
        + (" (delivered)" if delivered else ""),
        user_id=actor.id,
        user_name=actor.name,
        assignment_id=assignment.id,
        metadata={"platform": assignment.platform, "delivered": delivered},
    )
    await gateway.commit()
    return {**contact, "delivered": delivered}


async def notify_payment_completed(assignment: Assignment, payment: Payment, sender=send_telegram_message):
    chat_id = telegram_chat_id(assignment)
    if chat_id is None:
        logging.info(
            "Payment notification not sent: assignment=%s platform=%s",
            assignment.id,
            assignment.platform,
        )
        return
    text = render(
        "payment_completed.txt",
        a=assignment,
        order_id=order_id(assignment),
        amount=money(payment.amount, payment.currency),
        reference=payment.transaction_reference,
    )
    await sender(chat_id, text)
