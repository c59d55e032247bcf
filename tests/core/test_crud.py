"""Tests for TemplateDB administrative operations and project config."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import pytest

from issue_templates.core import (
    CONFIG_FILENAME,
    DATA_DIR_NAME,
    PERMISSION_EDIT,
    PERMISSION_VIEW,
    TemplateDB,
    find_root,
    read_config,
    write_config,
)
from issue_templates.db_schema import CURRENT_SCHEMA_VERSION
from issue_templates.models import ALL_TRACKERS, SpecificTracker
from issue_templates.permissions import DBPermissionGate
from tests._db_factory import SeededDB, make_db


class TestSchema:
    def test_fresh_db_is_stamped(self, db: TemplateDB) -> None:
        assert db.get_schema_version() == CURRENT_SCHEMA_VERSION

    def test_initialize_is_idempotent(self, db: TemplateDB) -> None:
        db.create_project("p")
        db.initialize()
        assert [p.id for p in db.list_projects()] == ["p"]

    def test_newer_schema_refused(self, tmp_path: Path) -> None:
        path = tmp_path / "future.db"
        conn = sqlite3.connect(str(path))
        conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION + 1}")
        conn.close()
        with pytest.raises(RuntimeError, match="newer"), TemplateDB(path) as d:
            d.initialize()


class TestProjects:
    def test_create_and_get(self, db: TemplateDB) -> None:
        project = db.create_project("ecookbook", "eCookbook")
        assert project.name == "eCookbook"
        assert project.module_enabled
        assert not project.inherit_templates
        assert db.get_project("ecookbook") == project

    def test_name_defaults_to_id(self, db: TemplateDB) -> None:
        assert db.create_project("plain").name == "plain"

    def test_duplicate_rejected(self, db: TemplateDB) -> None:
        db.create_project("p")
        with pytest.raises(ValueError, match="already exists"):
            db.create_project("p")

    def test_missing_parent_rejected(self, db: TemplateDB) -> None:
        with pytest.raises(ValueError, match="Parent project not found"):
            db.create_project("child", parent_id="ghost")

    def test_invalid_id_rejected(self, db: TemplateDB) -> None:
        with pytest.raises(ValueError, match="Invalid project id"):
            db.create_project("Has Space")

    def test_get_missing_raises_key_error(self, db: TemplateDB) -> None:
        with pytest.raises(KeyError):
            db.get_project("nope")

    def test_toggle_module_and_inheritance(self, db: TemplateDB) -> None:
        db.create_project("root")
        db.create_project("child", parent_id="root")
        assert not db.set_module_enabled("root", False).module_enabled
        assert db.set_inherit_templates("child", True).inherit_templates
        assert db.load_catalog().inheritance_chain("child") == ("root", "child")
        with pytest.raises(KeyError):
            db.set_module_enabled("ghost", True)


class TestTrackers:
    def test_create_and_list(self, db: TemplateDB) -> None:
        db.create_tracker("bug", "Bug")
        db.create_tracker("feature")
        assert [(t.id, t.name) for t in db.list_trackers()] == [("bug", "Bug"), ("feature", "feature")]

    def test_duplicate_rejected(self, db: TemplateDB) -> None:
        db.create_tracker("bug")
        with pytest.raises(ValueError, match="already exists"):
            db.create_tracker("bug")

    def test_delete_reports_orphans(self, seeded: SeededDB) -> None:
        assert seeded.db.delete_tracker("bug") == 4
        assert seeded.db.get_template(seeded.ids["sample"]).tracker_id == "bug"
        assert seeded.db.delete_tracker("support") == 0

    def test_delete_missing_raises(self, db: TemplateDB) -> None:
        with pytest.raises(KeyError):
            db.delete_tracker("ghost")


class TestTemplates:
    def test_create_defaults(self, seeded: SeededDB) -> None:
        tpl = seeded.db.get_template(seeded.ids["general"])
        assert tpl.id.startswith("tpl-")
        assert tpl.tracker == ALL_TRACKERS
        assert tpl.is_global
        assert tpl.enabled
        assert tpl.issue_title is None

    def test_positions_increase(self, seeded: SeededDB) -> None:
        positions = [t.position for t in seeded.db.find_all_for_project("ecookbook")]
        assert positions == sorted(positions)
        assert len(set(positions)) == len(positions)

    def test_explicit_position_orders_first(self, seeded: SeededDB) -> None:
        tpl = seeded.db.create_template("ecookbook", "Urgent", tracker=SpecificTracker("bug"), position=0)
        found = seeded.db.find_by_project_and_tracker("ecookbook", "bug")
        assert found[0].id == tpl.id

    def test_blank_issue_title_stored_as_none(self, db: TemplateDB) -> None:
        db.create_project("p")
        assert db.create_template("p", "T", issue_title="   ").issue_title is None

    def test_blank_title_rejected(self, db: TemplateDB) -> None:
        db.create_project("p")
        with pytest.raises(ValueError, match="blank"):
            db.create_template("p", "  ")

    def test_unknown_project_rejected(self, db: TemplateDB) -> None:
        with pytest.raises(KeyError):
            db.create_template("ghost", "T")

    def test_unknown_tracker_rejected(self, db: TemplateDB) -> None:
        db.create_project("p")
        with pytest.raises(ValueError, match="Tracker not found"):
            db.create_template("p", "T", tracker=SpecificTracker("ghost"))

    def test_one_default_per_project_tracker(self, db: TemplateDB) -> None:
        db.create_project("p")
        db.create_tracker("bug")
        first = db.create_template("p", "First", tracker=SpecificTracker("bug"), is_default=True)
        other_tracker = db.create_template("p", "Global", is_default=True)
        second = db.create_template("p", "Second", tracker=SpecificTracker("bug"), is_default=True)
        assert not db.get_template(first.id).is_default
        assert db.get_template(second.id).is_default
        assert db.get_template(other_tracker.id).is_default

        db.update_template(first.id, is_default=True)
        assert db.get_template(first.id).is_default
        assert not db.get_template(second.id).is_default

    def test_update_fields(self, seeded: SeededDB) -> None:
        updated = seeded.db.update_template(
            seeded.ids["sample"], title="Renamed", description="New body", issue_title="", enabled=False, position=9
        )
        assert updated.title == "Renamed"
        assert updated.description == "New body"
        assert updated.issue_title is None
        assert not updated.enabled
        assert updated.position == 9

    def test_update_without_changes_returns_current(self, seeded: SeededDB) -> None:
        current = seeded.db.get_template(seeded.ids["sample"])
        assert seeded.db.update_template(seeded.ids["sample"]) == current

    def test_delete(self, seeded: SeededDB) -> None:
        seeded.db.delete_template(seeded.ids["sample"])
        with pytest.raises(KeyError):
            seeded.db.get_template(seeded.ids["sample"])
        with pytest.raises(KeyError):
            seeded.db.delete_template(seeded.ids["sample"])

    def test_finder_includes_global_templates(self, seeded: SeededDB) -> None:
        titles = [t.title for t in seeded.db.find_by_project_and_tracker("ecookbook", "feature")]
        assert titles == ["General", "Feature request"]


class TestSettingsAndMembers:
    def test_setting_defaults_to_merge(self, seeded: SeededDB) -> None:
        assert seeded.db.get_setting("ecookbook").should_replace is False

    def test_set_should_replace_upserts(self, seeded: SeededDB) -> None:
        seeded.db.set_should_replace("ecookbook", True)
        assert seeded.db.get_setting("ecookbook").should_replace is True
        seeded.db.set_should_replace("ecookbook", False)
        assert seeded.db.get_setting("ecookbook").should_replace is False

    def test_setting_for_unknown_project(self, db: TemplateDB) -> None:
        with pytest.raises(KeyError):
            db.set_should_replace("ghost", True)

    def test_member_permissions(self, seeded: SeededDB) -> None:
        seeded.db.add_member("alice", "ecookbook", [PERMISSION_VIEW])
        seeded.db.add_member("bob", "ecookbook", [PERMISSION_EDIT])
        gate = DBPermissionGate(seeded.db)
        assert gate.can_view("alice", "ecookbook")
        assert not gate.can_edit("alice", "ecookbook")
        assert gate.can_view("bob", "ecookbook")
        assert gate.can_edit("bob", "ecookbook")
        assert not gate.can_view("alice", "onlinestore")
        assert not gate.can_view("carol", "ecookbook")

    def test_member_upsert_replaces_permissions(self, seeded: SeededDB) -> None:
        seeded.db.add_member("alice", "ecookbook", [PERMISSION_VIEW])
        seeded.db.add_member("alice", "ecookbook", [])
        assert seeded.db.get_permissions("alice", "ecookbook") == frozenset()

    def test_unknown_permission_rejected(self, seeded: SeededDB) -> None:
        with pytest.raises(ValueError, match="Unknown permission"):
            seeded.db.add_member("alice", "ecookbook", ["admin"])

    def test_bad_user_rejected(self, seeded: SeededDB) -> None:
        with pytest.raises(ValueError, match="empty"):
            seeded.db.add_member("  ", "ecookbook", [PERMISSION_VIEW])


class TestConfig:
    def test_find_root_walks_up(self, tmp_path: Path) -> None:
        data_dir = tmp_path / DATA_DIR_NAME
        data_dir.mkdir()
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_root(nested) == data_dir.resolve()

    def test_find_root_missing(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            find_root(tmp_path)

    def test_read_merges_defaults(self, tmp_path: Path) -> None:
        data_dir = tmp_path / DATA_DIR_NAME
        data_dir.mkdir()
        write_config(data_dir, {"default_project": "ecookbook"})
        config = read_config(data_dir)
        assert config["default_project"] == "ecookbook"
        assert config["version"] == 1
        assert config["name"] == tmp_path.name

    def test_corrupt_config_uses_defaults(self, tmp_path: Path) -> None:
        data_dir = tmp_path / DATA_DIR_NAME
        data_dir.mkdir()
        (data_dir / CONFIG_FILENAME).write_text("{not json")
        assert read_config(data_dir) == {"name": tmp_path.name, "version": 1}

    def test_non_object_config_uses_defaults(self, tmp_path: Path) -> None:
        data_dir = tmp_path / DATA_DIR_NAME
        data_dir.mkdir()
        (data_dir / CONFIG_FILENAME).write_text(json.dumps(["x"]))
        assert read_config(data_dir)["version"] == 1

    def test_from_project_opens_db(self, tmp_path: Path) -> None:
        make_db(tmp_path, with_config=True).close()
        with TemplateDB.from_project(tmp_path) as d:
            assert d.get_schema_version() == CURRENT_SCHEMA_VERSION
