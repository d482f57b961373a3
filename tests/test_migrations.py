"""Tests for migration ordering and selection (no database needed)."""
from situation_room.migrations.migrate import MIGRATIONS_DIR, migration_files, pending_migrations


def test_packaged_schema_is_discovered():
    assert [f.name for f in migration_files()] == ["001_situation_rooms.sql"]
    assert MIGRATIONS_DIR.joinpath("001_situation_rooms.sql").exists()


def test_files_sorted_and_applied_ones_skipped(tmp_path):
    for name in ("002_indexes.sql", "001_base.sql", "010_extra.sql", "notes.txt"):
        (tmp_path / name).write_text("SELECT 1;")

    files = migration_files(tmp_path)

    assert [f.name for f in files] == ["001_base.sql", "002_indexes.sql", "010_extra.sql"]
    assert [f.name for f in pending_migrations(files, ["001_base.sql"])] == ["002_indexes.sql", "010_extra.sql"]
    assert pending_migrations(files, [f.name for f in files]) == []
