#!/usr/bin/env python
"""
Seed script to populate the database with sample data for local development.

Usage:
    python scripts/seed_data.py --members 10
"""

import argparse
from datetime import date, timedelta
from decimal import Decimal

from mutualaid.auth.jwt import get_password_hash
from mutualaid.api.dependencies import session_scope
from mutualaid.config import Base, engine
from mutualaid.constants import ANNUAL_FEE, Role
from mutualaid.models.models import BulletinPost, Milestone, User
from mutualaid.services.members import register_member

DEFAULT_PASSWORD = "changeme"

MILESTONES = [
    (60, Decimal("50000"), "Sixtieth birthday benefit"),
    (65, Decimal("75000"), "Sixty-fifth birthday benefit"),
    (70, Decimal("100000"), "Seventieth birthday benefit"),
]

BULLETIN_POSTS = [
    ("Annual dues reminder", "Annual dues of 780 are due for the current year."),
    ("General assembly", "The general assembly meets on the first Sunday of next month."),
]


def create_role_users(session) -> User:
    admin = None
    for role in Role:
        email = f"{role.value.lower()}@example.com"
        user = session.query(User).filter(User.email == email).first()
        if not user:
            user = User(
                email=email,
                full_name=f"Demo {role.label}",
                hashed_password=get_password_hash(DEFAULT_PASSWORD),
                role=role.value,
                is_active=True,
            )
            session.add(user)
            session.flush()
        if role is Role.ADMIN:
            admin = user
    session.commit()
    return admin


def create_members(session, actor: User, count: int) -> None:
    today = date.today()
    for index in range(count):
        registration_year = today.year - (index % 6)
        # Every third member skips the most recent years to exercise delinquency.
        skipped = index % 3
        payments = [
            {"year": year, "amount": ANNUAL_FEE, "date": date(year, 1, 15)}
            for year in range(registration_year + 1, today.year + 1 - skipped)
        ]
        register_member(
            session,
            {
                "name": f"Sample Member {index + 1}",
                "email": f"member{index + 1}@example.com",
                "registration_year": registration_year,
                "date_of_birth": date(1960 + index, 1 + index % 12, 1 + index % 28),
            },
            actor,
            payments=payments,
            today=today,
        )


def create_milestones(session) -> None:
    for age, amount, description in MILESTONES:
        if not session.query(Milestone).filter(Milestone.age == age).first():
            session.add(Milestone(age=age, amount=amount, description=description))
    session.commit()


def create_bulletin_posts(session, author: User) -> None:
    for offset, (title, content) in enumerate(BULLETIN_POSTS):
        if not session.query(BulletinPost).filter(BulletinPost.title == title).first():
            session.add(
                BulletinPost(
                    title=title,
                    content=content,
                    author=author.display_name,
                    date=date.today() - timedelta(days=offset),
                    created_by_user_id=author.id,
                )
            )
    session.commit()


def seed_database(members: int) -> None:
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        admin = create_role_users(session)
        create_members(session, admin, max(members, 0))
        create_milestones(session)
        create_bulletin_posts(session, admin)
        print(f"Seed complete. Created {max(members, 0)} members and one account per role (password: '{DEFAULT_PASSWORD}').")


def main():
    parser = argparse.ArgumentParser(description="Seed the membership database with sample data.")
    parser.add_argument("--members", type=int, default=10, help="Number of members to register")
    args = parser.parse_args()
    seed_database(args.members)


if __name__ == "__main__":
    main()
