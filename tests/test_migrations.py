from pathlib import Path

from alembic import command
from alembic.config import Config
import mutualaid.config as app_config
from mutualaid.models.models import ActivityLog, Member, MemberPayment
import sqlalchemy as sa

ROOT = Path(__file__).resolve().parents[1]


def test_initial_migration_creates_membership_tables(tmp_path, monkeypatch):
    db_path = tmp_path / "migrations.db"
    db_url = f"sqlite:///{db_path}"
    monkeypatch.setattr(app_config.settings, "database_url", db_url, raising=False)

    config = Config(str(ROOT / "mutualaid" / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "mutualaid" / "migrations"))
    command.upgrade(config, "head")

    engine = sa.create_engine(db_url)
    try:
        inspector = sa.inspect(engine)
        tables = set(inspector.get_table_names())
        assert {
            "users",
            "members",
            "member_payments",
            "officers",
            "milestones",
            "bulletin_posts",
            "activity_logs",
        } <= tables
        payment_columns = {column["name"] for column in inspector.get_columns("member_payments")}
        assert {"member_id", "year", "amount", "date", "is_paid"} <= payment_columns

        with sa.orm.Session(engine) as session:
            session.query(Member).all()
            session.query(MemberPayment).all()
            session.query(ActivityLog).all()
    finally:
        engine.dispose()
