"""Seed a demo gift with a few invitees for local development."""
from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

from giftsplit import db
from giftsplit.config import get_settings
from giftsplit.schemas import GiftCreate
from giftsplit.services import gifts as gift_service
from giftsplit.services import invitations as invitation_service


def main() -> None:
    settings = get_settings()
    print(f"Using database: {settings.database_url}")

    session = db.get_sessionmaker()()
    try:
        gift, link = gift_service.create_gift(
            session,
            GiftCreate(name="Team farewell present", total_amount_cents=10_000, currency="usd"),
            actor="seed",
        )
        gift_service.add_invitees(
            session,
            gift.id,
            ["alice@example.com", "bob@example.com", "carol@example.com"],
            actor="seed",
        )
        print(f"Seeded gift {gift.id}; join at {invitation_service.link_url(link.token)}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
