import json

import pytest

from discordsync.core.state_store import StateEntry, StateError, StateStore


def test_missing_file_is_empty_state(tmp_path):
    store = StateStore.load(str(tmp_path / "state.json"))
    assert len(store) == 0


def test_save_and_reload(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = StateStore(str(path))
    store.put("member_roles.a", StateEntry("member_roles", "1:2", {"server_id": "1", "user_id": "2", "roles": []}))
    store.put("channel.c", StateEntry("channel", "77", {"name": "general"}))
    store.save()

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert list(raw["resources"]) == ["channel.c", "member_roles.a"]
    # no temp files left behind
    assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    again = StateStore.load(str(path))
    assert again.get("member_roles.a").id == "1:2"
    assert again.get("channel.c").attributes == {"name": "general"}

    again.drop("channel.c")
    assert list(again.addresses()) == ["member_roles.a"]


def test_kind_defaults_to_address_prefix(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"version": 1, "resources": {"member_nick.x": {"id": "5"}}}), encoding="utf-8")
    assert StateStore.load(str(path)).get("member_nick.x").kind == "member_nick"


@pytest.mark.parametrize(
    "content",
    ["{not json", "[]", json.dumps({"version": 2}), json.dumps({"resources": {"a.b": {"kind": "x"}}})],
)
def test_bad_state_files(tmp_path, content):
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StateError):
        StateStore.load(str(path))


def test_save_without_path():
    with pytest.raises(StateError):
        StateStore().save()
