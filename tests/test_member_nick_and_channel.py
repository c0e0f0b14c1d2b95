import pytest

from discordsync.core.discord_client import TransportError
from discordsync.core.state_store import StateEntry
from discordsync.resources.base import ResourceError
from discordsync.resources.channel import ChannelResource, build_payload, changed_fields
from discordsync.resources.member_nick import MemberNickResource


# ---------- member_nick ----------

def _nick(nick, user_id="2"):
    return {"server_id": "1", "user_id": user_id, "nick": nick}


def test_nick_create_and_update(directory):
    directory.add_member("1", "2", nick="old")
    res = MemberNickResource(directory)

    out = res.create(_nick("new"))
    assert out.status == "CREATED"
    assert out.entry.id == "1:2"
    assert directory.members[("1", "2")]["nick"] == "new"

    out = res.reconcile("member_nick.a", _nick("new"), out.entry)
    assert out.status == "UNCHANGED"

    # someone renamed the member out of band
    directory.members[("1", "2")]["nick"] = "drifted"
    out = res.reconcile("member_nick.a", _nick("new"), out.entry)
    assert out.status == "UPDATED"
    assert out.detail == "nick 'drifted' -> 'new'"
    assert directory.members[("1", "2")]["nick"] == "new"


def test_nick_create_skips_write_when_already_set(directory):
    directory.add_member("1", "2", nick="same")
    out = MemberNickResource(directory).create(_nick("same"))
    assert out.status == "CREATED"
    assert directory.mutations() == []


def test_nick_delete_resets(directory):
    directory.add_member("1", "2", nick="pinned")
    out = MemberNickResource(directory).delete(StateEntry("member_nick", "1:2", _nick("pinned")))
    assert out.status == "DELETED"
    assert directory.calls[-1] == ("set_member_nick", "1", "2", "")


def test_nick_update_error_mentions_old_and_new(directory):
    directory.add_member("1", "2", nick="a")
    directory.fail["set_member_nick"] = TransportError(status=400, url="/x", message="Invalid Form Body")
    res = MemberNickResource(directory)
    with pytest.raises(ResourceError) as ei:
        res.reconcile("member_nick.a", _nick("b"), StateEntry("member_nick", "1:2", _nick("a")))
    assert "'a' to 'b'" in str(ei.value)


# ---------- channel ----------

def _channel(**kw):
    attrs = {
        "server_id": "1",
        "name": "announcements",
        "type": "news",
        "topic": "",
        "position": 1,
        "parent_id": None,
    }
    attrs.update(kw)
    return attrs


def test_build_payload_maps_type_and_topic():
    assert build_payload(_channel(topic="hello")) == {
        "name": "announcements",
        "type": 5,
        "position": 1,
        "topic": "hello",
    }
    voice = build_payload(_channel(type="voice", parent_id="7"))
    assert "topic" not in voice
    assert voice["parent_id"] == "7"


def test_changed_fields_only_reports_differences():
    observed = {"name": "announcements", "position": 1, "topic": None, "parent_id": "7"}
    assert changed_fields(_channel(parent_id="7"), observed) == {}
    assert changed_fields(_channel(name="news", parent_id="7"), observed) == {"name": "news"}
    # dropping the parent moves the channel out of its category
    assert changed_fields(_channel(), observed) == {"parent_id": None}


def test_channel_lifecycle(directory):
    res = ChannelResource(directory)

    created = res.create(_channel(topic="t1"))
    assert created.status == "CREATED"
    channel_id = created.entry.id
    assert directory.channels[channel_id]["type"] == 5

    out = res.reconcile("channel.news", _channel(topic="t1"), created.entry)
    assert out.status == "UNCHANGED"

    out = res.reconcile("channel.news", _channel(topic="t2", position=3), created.entry)
    assert out.status == "UPDATED"
    assert out.detail == "fields: position, topic"
    assert directory.calls[-1] == ("modify_channel", channel_id, {"position": 3, "topic": "t2"})

    out = res.reconcile("channel.news", None, out.entry)
    assert out.status == "DELETED"
    assert channel_id not in directory.channels


def test_channel_type_change_replaces(directory):
    res = ChannelResource(directory)
    first = res.create(_channel(type="text"))

    out = res.reconcile("channel.c", _channel(type="news"), first.entry)

    assert out.status == "REPLACED"
    assert out.entry.id != first.entry.id
    assert first.entry.id not in directory.channels


def test_channel_deleted_out_of_band_is_recreated(directory):
    res = ChannelResource(directory)
    first = res.create(_channel())
    directory.channels.clear()

    out = res.reconcile("channel.c", _channel(), first.entry)

    assert out.status == "CREATED"
    assert out.detail.startswith("previous object gone")
    assert out.entry.id in directory.channels


def test_channel_delete_of_missing_channel_is_gone(directory):
    out = ChannelResource(directory).delete(StateEntry("channel", "404", _channel()))
    assert out.status == "GONE"


def test_channel_dry_run_create_makes_no_call(directory):
    out = ChannelResource(directory).create(_channel(), dry_run=True)
    assert out.status == "CREATED"
    assert directory.calls == []
