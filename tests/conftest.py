import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from marketplace.db.base_class import Base
from marketplace.errors import ProviderUnavailable
from marketplace.models import Assignment, User
from marketplace.providers.base import Checkout, PaymentProvider


def setup_test_db(path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    TestingSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)

    async def init_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return TestingSessionLocal


@pytest.fixture
def session_factory(tmp_path):
    return setup_test_db(tmp_path / "test.db")


class FakeProvider(PaymentProvider):
    name = "fake"

    def __init__(self, status="PENDING", fail_checkout=False, fail_status=False):
        self.status = status
        self.fail_checkout = fail_checkout
        self.fail_status = fail_status
        self.checkouts = []
        self.status_calls = 0

    async def create_checkout(self, amount, currency, reference, redirect_url, customer):
        if self.fail_checkout:
            raise ProviderUnavailable("provider down")
        self.checkouts.append(
            {"amount": amount, "currency": currency, "reference": reference, "redirect_url": redirect_url}
        )
        return Checkout(id=f"link-{len(self.checkouts)}", url=f"https://pay.example/{reference}")

    async def get_status(self, provider_payment_id):
        self.status_calls += 1
        if self.fail_status:
            raise ProviderUnavailable("provider down")
        return self.status


@pytest.fixture
def provider():
    return FakeProvider()


def make_user(user_id="student-0001", role="user", school_level=None, **kwargs):
    return User(
        id=user_id,
        name=kwargs.pop("name", "Ada Student"),
        email=kwargs.pop("email", f"{user_id}@example.com"),
        role=role,
        school_level=school_level,
        created_at=datetime.utcnow(),
        **kwargs,
    )


def make_assignment(user, status="pending", price=None, **kwargs):
    fields = dict(
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        assignment_type="Essay",
        course_name="Modern History",
        class_name="11B",
        teacher_name="Mr Brown",
        due_date=date.today() + timedelta(days=10),
        platform="WhatsApp",
        platform_contact="+44 7700 900123",
        description="A short essay on the Industrial Revolution",
        files=[],
        status=status,
        payment_amount=price,
        payment_currency="GBP" if price is not None else None,
        created_at=datetime.utcnow(),
    )
    fields.update(kwargs)
    return Assignment(**fields)


async def seed(session_factory, *objects):
    async with session_factory() as db:
        db.add_all(objects)
        await db.commit()
