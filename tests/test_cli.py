"""Tests for the tokenator command line."""
import json

import pytest

from fake_relay import create_relay_app, relay_client
from fakes import FakeWallet
from tokenator import cli
from tokenator.channel import MessageChannel
from tokenator.config import Settings


@pytest.fixture
def relay_app():
    return create_relay_app()


@pytest.fixture(autouse=True)
def fake_channel(monkeypatch, relay_app):
    """Every CLI run talks to the relay emulator as id-bob."""
    def channel(self, wallet=None):
        return MessageChannel(relay_client(relay_app, "id-bob"), FakeWallet("id-bob"))

    monkeypatch.setattr(Settings, "channel", channel)
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: Settings())


def test_send_list_ack(capsys, relay_app):
    assert cli.main(["send", "--recipient", "id-bob", "--box", "inbox",
                     "--body", '{"a": 1}', "--json"]) == 0
    sent = json.loads(capsys.readouterr().out)
    assert sent["status"] == "success"

    assert cli.main(["list", "--box", "inbox"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [m["messageId"] for m in listed] == [sent["messageId"]]
    assert json.loads(listed[0]["body"]) == {"a": 1}

    assert cli.main(["read", sent["messageId"]]) == 0
    assert json.loads(capsys.readouterr().out)[0]["messageId"] == sent["messageId"]

    assert cli.main(["ack", sent["messageId"]]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "success"
    assert relay_app.state.messages == {}


def test_invalid_json_body_is_reported(capsys):
    assert cli.main(["send", "--recipient", "id-bob", "--box", "inbox",
                     "--body", "{oops", "--json"]) == 1
    assert "ERR_INVALID_BODY" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 2
    assert "usage" in capsys.readouterr().out.lower()


def test_parser_requires_box_for_list():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["list"])
