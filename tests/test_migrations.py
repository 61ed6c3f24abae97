"""The alembic baseline builds the same schema as the models"""
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from database.base import Base

ROOT = Path(__file__).resolve().parents[1]


def _schema(engine):
    inspector = inspect(engine)
    schema = {}
    for table in inspector.get_table_names():
        if table == "alembic_version":
            continue
        schema[table] = {
            "columns": {c["name"]: c["nullable"] for c in inspector.get_columns(table)},
            "primary_key": inspector.get_pk_constraint(table)["constrained_columns"],
            "indexes": sorted(
                (i["name"], bool(i["unique"]), tuple(i["column_names"])) for i in inspector.get_indexes(table)
            ),
            "unique": sorted(tuple(u["column_names"]) for u in inspector.get_unique_constraints(table)),
            "foreign_keys": sorted(
                (tuple(fk["constrained_columns"]), fk["referred_table"], fk["options"].get("ondelete") or "")
                for fk in inspector.get_foreign_keys(table)
            ),
        }
    return schema


def _alembic_config():
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))
    return config


class TestBaselineMigration:
    def test_upgrade_matches_models(self, tmp_path):
        migrated = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
        config = _alembic_config()
        with migrated.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")

        expected = create_engine(f"sqlite:///{tmp_path / 'models.db'}")
        Base.metadata.create_all(bind=expected)

        assert _schema(migrated) == _schema(expected)

    def test_downgrade_drops_everything(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
        config = _alembic_config()
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
            command.downgrade(config, "base")

        assert inspect(engine).get_table_names() == ["alembic_version"]
