"""Tests for the CLI entry point and REPL helpers."""

from unittest.mock import Mock

import cli.main
import cli.repl
from cli.constants import HELP_TEXT
from cli.models import UploadCommand
from cli.pan_client import PanClient


def test_run_once_dispatches_parsed_command(monkeypatch, capsys):
    dispatch = Mock(return_value="Uploaded: a.txt (#5), 3 B, 1 chunk(s) sent")
    monkeypatch.setattr(cli.main, 'dispatch_command', dispatch)

    exit_code = cli.main.run_once(['upload', 'my file.txt', '/docs', '--no-create'])

    assert exit_code == 0
    dispatch.assert_called_once_with(UploadCommand(file_path='my file.txt', target_path='/docs', create_missing=False))
    assert 'Uploaded: a.txt' in capsys.readouterr().out


def test_run_once_error_result(monkeypatch):
    monkeypatch.setattr(cli.main, 'dispatch_command', Mock(return_value="Error: Folder not found: x"))
    assert cli.main.run_once(['cd', 'x']) == 1


def test_run_once_parse_error(capsys):
    assert cli.main.run_once(['frobnicate']) == 2
    assert 'Unknown command' in capsys.readouterr().err


def test_run_builtin_help(capsys):
    assert cli.repl.run_builtin('help')
    assert HELP_TEXT in capsys.readouterr().out


def test_run_builtin_ignores_other_commands():
    assert not cli.repl.run_builtin('ls')


def test_prompt_shows_current_folder(monkeypatch, temp_config):
    temp_config.set_last_folder(4, '/docs')
    client = Mock(spec=PanClient)
    client.config = temp_config
    monkeypatch.setattr(cli.repl, 'get_client', lambda: client)

    assert cli.repl.build_prompt() == [("class:prompt", "pan:/docs> ")]
