"""Tests for puppet request types (puppetry/puppets/params.py)."""

from __future__ import annotations

import pytest

from puppetry.ident import IdentServer
from puppetry.puppets.params import (
    ConnectParams,
    InterpolationParams,
    NickParams,
    QuitParams,
    SendRawParams,
    SetupParams,
)


class TestSetupParams:
    def test_defaults(self):
        params = SetupParams()
        assert params.use_tls is True
        assert params.insecure_skip_verify is False
        assert params.ident_server is None

    def test_to_dict_omits_ident_server(self):
        params = SetupParams(server="irc.example.net:6697", ident_server=IdentServer())
        assert "ident_server" not in params.to_dict()

    def test_from_dict_fills_defaults(self):
        params = SetupParams.from_dict({"server": "irc.example.net"})
        assert params == SetupParams(server="irc.example.net")


class TestConnectParams:
    def test_from_dict_requires_uid_and_nick(self):
        with pytest.raises(KeyError):
            ConnectParams.from_dict({"uid": "u1"})

    def test_callbacks_not_serialized(self):
        params = ConnectParams(uid="u1", nick="alice", callbacks={"PRIVMSG": print})
        assert params.to_dict() == {
            "uid": "u1",
            "nick": "alice",
            "username": "",
            "realname": "",
            "webirc_suffix": "",
        }

    def test_from_dict_optional_fields(self):
        params = ConnectParams.from_dict(
            {"uid": "u1", "nick": "alice", "realname": "Alice", "webirc_suffix": "gw host 1.2.3.4"}
        )
        assert params.realname == "Alice"
        assert params.webirc_suffix == "gw host 1.2.3.4"
        assert params.callbacks == {}


class TestSmallParams:
    def test_quit_default_message(self):
        assert QuitParams.from_dict({"uid": "u1"}) == QuitParams(uid="u1", quit_message="")

    def test_nick_from_dict(self):
        assert NickParams.from_dict({"uid": "u1", "nick": "bob"}) == NickParams("u1", "bob")


class TestSendRawParams:
    def test_from_dict(self):
        params = SendRawParams.from_dict(
            {"uid": "", "messages": ["JOIN #a"], "interpolation": {"nick": True}}
        )
        assert params == SendRawParams(
            uid="", messages=["JOIN #a"], interpolation=InterpolationParams(nick=True)
        )

    def test_from_empty_dict_broadcasts_nothing(self):
        params = SendRawParams.from_dict({})
        assert params.uid == ""
        assert params.messages == []
        assert params.interpolation.nick is False

    def test_messages_must_be_list(self):
        with pytest.raises(ValueError):
            SendRawParams.from_dict({"messages": "JOIN #a"})
