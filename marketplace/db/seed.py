"""Populate the database with the default pricing rules and an admin profile."""

import asyncio
import os

from sqlalchemy import delete

from marketplace.db.session import DATABASE_URL, SessionLocal, init_models
from marketplace.models import PricingRule, User

print(f"🗂 Используется база данных: {DATABASE_URL}")

# (complexity, assignment_type, £/hour)
DEFAULT_RULES = [
    ("low", "default", 12),
    ("medium", "default", 20),
    ("high", "default", 35),
    ("high", "Dissertation", 40),
]


async def main() -> None:
    await init_models()
    async with SessionLocal() as session:
        print("🧹 Очищаю таблицу правил...")
        await session.execute(delete(PricingRule))

        print("➕ Добавляю правила ценообразования...")
        session.add_all(
            PricingRule(complexity=c, assignment_type=t, hourly_rate=rate)
            for c, t, rate in DEFAULT_RULES
        )

        admin_id = os.getenv("ADMIN_USER_ID")
        if admin_id and await session.get(User, admin_id) is None:
            print("👤 Создаю администратора...")
            session.add(
                User(
                    id=admin_id,
                    name=os.getenv("ADMIN_NAME", "Admin"),
                    email=os.getenv("ADMIN_EMAIL"),
                    role="admin",
                )
            )
        await session.commit()

        print("✅ База данных успешно заполнена.")


if __name__ == "__main__":
    asyncio.run(main())
