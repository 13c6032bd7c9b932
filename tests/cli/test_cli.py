"""Tests for the script-vault CLI commands."""

import pytest
from typer.testing import CliRunner

from script_vault.cli.main import app as cli_app
from script_vault.config import ConfigManager
from script_vault.storage import StateStore

runner = CliRunner()


def load_state():
    return StateStore(ConfigManager().config.state_file_path).load()


@pytest.fixture
def folder(tmp_path):
    path = tmp_path / "linked"
    path.mkdir()
    (path / "hello.js").write_text("console.log('hello')\n")
    (path / "tool.py").write_text("print('tool')\n")
    return path


def test_list_empty_vault(config_manager):
    result = runner.invoke(cli_app, ["list"])

    assert result.exit_code == 0
    assert "The vault is empty" in result.output


def test_link_imports_folder(config_manager, folder):
    result = runner.invoke(cli_app, ["link", str(folder)])

    assert result.exit_code == 0, result.output
    assert "Folder linked and imported" in result.output
    assert ConfigManager().config.linked_folder == str(folder.resolve())
    assert sorted(script.file_path for script in load_state().scripts) == ["hello.js", "tool.py"]

    listed = runner.invoke(cli_app, ["list"])
    assert "hello" in listed.output
    assert "tool" in listed.output


def test_link_missing_directory(config_manager, tmp_path):
    result = runner.invoke(cli_app, ["link", str(tmp_path / "missing")])

    assert result.exit_code == 1
    assert "not a directory" in result.output


def test_sync_requires_linked_folder(config_manager):
    result = runner.invoke(cli_app, ["sync"])

    assert result.exit_code == 1
    assert "No folder is linked" in result.output


def test_sync_after_link(config_manager, folder):
    runner.invoke(cli_app, ["link", str(folder)])

    result = runner.invoke(cli_app, ["sync"])

    assert result.exit_code == 0, result.output
    assert "No changes detected" in result.output


def test_new_show_and_edit(config_manager, tmp_path):
    result = runner.invoke(cli_app, ["new", "--name", "Greeter", "--language", "python"])
    assert result.exit_code == 0, result.output
    assert "Created" in result.output

    script = load_state().scripts[0]
    assert script.name == "Greeter"
    assert script.language == "python"

    source = tmp_path / "greeter.py"
    source.write_text("print('hi')\n")
    result = runner.invoke(cli_app, ["edit", script.id[:8], "--from-file", str(source), "-d", "says hi"])
    assert result.exit_code == 0, result.output

    edited = load_state().scripts[0]
    assert edited.content == "print('hi')\n"
    assert edited.description == "says hi"

    result = runner.invoke(cli_app, ["show", script.id])
    assert result.exit_code == 0
    assert "Greeter" in result.output
    assert "says hi" in result.output


def test_new_from_file_detects_language(config_manager, tmp_path):
    source = tmp_path / "report.sql"
    source.write_text("select 1;\n")

    result = runner.invoke(cli_app, ["new", "--from-file", str(source)])

    assert result.exit_code == 0, result.output
    script = load_state().scripts[0]
    assert script.name == "report"
    assert script.language == "sql"
    assert script.content == "select 1;\n"


def test_new_rejects_unknown_language(config_manager):
    result = runner.invoke(cli_app, ["new", "--language", "cobol"])

    assert result.exit_code == 1
    assert "Unknown language" in result.output
    assert load_state().scripts == []


def test_edit_unknown_script(config_manager):
    result = runner.invoke(cli_app, ["edit", "nope", "--name", "x"])

    assert result.exit_code == 1
    assert "no script with id" in result.output


def test_save_without_linked_folder(config_manager):
    runner.invoke(cli_app, ["new", "--name", "local"])

    result = runner.invoke(cli_app, ["save"])

    assert result.exit_code == 0
    assert "Saved" in result.output


def test_save_writes_linked_folder(config_manager, folder):
    runner.invoke(cli_app, ["link", str(folder)])
    runner.invoke(cli_app, ["new", "--name", "Extra Step", "--language", "bash"])

    result = runner.invoke(cli_app, ["save"])

    assert result.exit_code == 0, result.output
    assert "Saved to disk" in result.output
    assert (folder / "Extra-Step.sh").exists()
    assert (folder / "metadata.json").exists()


def test_delete_removes_file(config_manager, folder):
    runner.invoke(cli_app, ["link", str(folder)])
    target = next(script for script in load_state().scripts if script.file_path == "hello.js")

    result = runner.invoke(cli_app, ["delete", target.id, "--yes"])

    assert result.exit_code == 0, result.output
    assert not (folder / "hello.js").exists()
    assert [script.file_path for script in load_state().scripts] == ["tool.py"]


def test_delete_can_be_aborted(config_manager):
    runner.invoke(cli_app, ["new"])
    script = load_state().scripts[0]

    result = runner.invoke(cli_app, ["delete", script.id], input="n\n")

    assert result.exit_code == 1
    assert len(load_state().scripts) == 1


def test_select(config_manager):
    runner.invoke(cli_app, ["new", "--name", "one"])
    runner.invoke(cli_app, ["new", "--name", "two"])
    one = next(script for script in load_state().scripts if script.name == "one")

    result = runner.invoke(cli_app, ["select", one.id])

    assert result.exit_code == 0
    assert load_state().selected_id == one.id


def test_status_and_unlink(config_manager, folder):
    result = runner.invoke(cli_app, ["status"])
    assert result.exit_code == 0
    assert "none" in result.output
    assert "never" in result.output

    runner.invoke(cli_app, ["link", str(folder)])
    result = runner.invoke(cli_app, ["status"])
    assert "granted" in result.output

    result = runner.invoke(cli_app, ["unlink"])
    assert result.exit_code == 0
    assert "Unlinked" in result.output
    assert ConfigManager().config.linked_folder is None
