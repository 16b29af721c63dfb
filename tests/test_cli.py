"""
Tests for the command line interface against a temporary database.
"""

import pytest
from typer.testing import CliRunner

from kaptwatch import __version__
from kaptwatch.cli import runtime
from kaptwatch.cli.main import app
from kaptwatch.core.config import AppConfig, load_app_config
from kaptwatch.persistence import SelectionRepository, SnapshotRepository, SqlKeyValueStore

from conftest import make_record, make_snapshot

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path):
    """Config file plus a database seeded with a small snapshot."""
    db_url = f"sqlite:///{tmp_path / 'kaptwatch.db'}"
    config_path = tmp_path / "app.yaml"
    config_path.write_text(
        f"storage:\n  url: {db_url}\n"
        "logging:\n  file: null\n  rich_console: false\n  level: WARNING\n",
        encoding="utf-8",
    )

    store = SqlKeyValueStore(db_url)
    SnapshotRepository(store).save(make_snapshot(
        make_record("101", title="[서울] 경비용역", region="Seoul", category="security"),
        make_record("102", title="[인천] 청소용역", region="Incheon", category="service"),
    ))
    store.close()

    return {"config": config_path, "db_url": db_url}


def invoke(workspace, *args):
    return runner.invoke(app, list(args), env={"KAPTWATCH_CONFIG": str(workspace["config"])})


def stored_selection(workspace):
    store = SqlKeyValueStore(workspace["db_url"])
    try:
        return SelectionRepository(store).load()
    finally:
        store.close()


class TestVersion:

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestBidsCommands:

    def test_list_as_csv_filtered_by_region(self, workspace):
        result = invoke(workspace, "bids", "list", "--region", "incheon", "--format", "csv")

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("id,title,aptName")
        assert len(lines) == 2
        assert lines[1].startswith("102,")

    def test_unknown_format_fails(self, workspace):
        result = invoke(workspace, "bids", "list", "--format", "xml")

        assert result.exit_code == 1


class TestSelectionCommands:

    def test_add_annotate_remove(self, workspace):
        assert invoke(workspace, "selection", "add", "101").exit_code == 0
        assert invoke(workspace, "selection", "add", "102").exit_code == 0

        result = invoke(
            workspace,
            "selection", "annotate", "101",
            "--method", "in-person",
            "--visit-date", "2025-06-12",
            "--visit-start", "10:00",
        )
        assert result.exit_code == 0

        selection = stored_selection(workspace)
        assert selection.check_order == ["102", "101"]
        annotation = selection.entries["101"].annotation
        assert annotation.submission_method.value == "in-person"
        assert annotation.site_visit.enabled is True
        assert annotation.site_visit.start_time == "10:00"

        assert invoke(workspace, "selection", "remove", "102").exit_code == 0
        assert stored_selection(workspace).check_order == ["101"]

    def test_add_unknown_notice_fails(self, workspace):
        result = invoke(workspace, "selection", "add", "999")

        assert result.exit_code == 1
        assert stored_selection(workspace).check_order == []

    def test_annotate_requires_a_change(self, workspace):
        invoke(workspace, "selection", "add", "101")

        result = invoke(workspace, "selection", "annotate", "101")

        assert result.exit_code == 1

    def test_save_and_restore(self, workspace):
        invoke(workspace, "selection", "add", "101")
        assert invoke(workspace, "selection", "save").exit_code == 0
        invoke(workspace, "selection", "clear", "--yes")
        assert stored_selection(workspace).check_order == []

        store = SqlKeyValueStore(workspace["db_url"])
        name = SelectionRepository(store).list_named()[0]["name"]
        store.close()

        result = invoke(workspace, "selection", "restore", name)

        assert result.exit_code == 0
        assert stored_selection(workspace).check_order == ["101"]


class TestInit:

    def test_writes_default_config_and_database(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config_path = tmp_path / "configs" / "app.yaml"

        result = runner.invoke(app, ["init"], env={"KAPTWATCH_CONFIG": str(config_path)})

        assert result.exit_code == 0, result.output
        assert load_app_config(config_path) == AppConfig()
        assert (tmp_path / "data" / "kaptwatch.db").exists()

    def test_keeps_existing_config_without_force(self, workspace, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        before = workspace["config"].read_text(encoding="utf-8")

        result = invoke(workspace, "init")

        assert result.exit_code == 0, result.output
        assert workspace["config"].read_text(encoding="utf-8") == before


class TestStoreLifecycle:

    def test_commands_close_the_store(self, workspace, monkeypatch):
        opened = []

        class TrackingStore(SqlKeyValueStore):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                self.closed = False
                opened.append(self)

            def close(self):
                self.closed = True
                super().close()

        monkeypatch.setattr(runtime, "SqlKeyValueStore", TrackingStore)

        for args in (
            ["selection", "add", "101"],
            ["selection", "add", "999"],
            ["bids", "list"],
            ["sync", "status"],
            ["sync", "history"],
        ):
            invoke(workspace, *args)

        assert len(opened) == 5
        assert all(store.closed for store in opened)
