from __future__ import annotations

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.services.ledger_queries import fetch_transactions
from app.services.seed import seed_demo_data


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        user = seed_demo_data(db)
        rows = fetch_transactions(db, user.id)
        print(f"Demo data ready for {user.email}: {len(rows)} transactions.")


if __name__ == "__main__":
    main()
