"""Tests for the record store."""

from dockyard.models.image import ImageSpec
from dockyard.models.record import ImageRecord
from dockyard.state.store import StateStore


def _record(resource="web", image_id="sha256:1"):
    return ImageRecord(
        resource=resource,
        image_id=image_id,
        repo_digest="nginx@sha256:d",
        spec=ImageSpec(name="nginx", triggers={"a": "1"}),
    )


def test_roundtrip(tmp_path):
    store = StateStore(tmp_path)
    record = _record()

    store.put(record)

    assert store.get("web") == record


def test_missing(tmp_path):
    assert StateStore(tmp_path).get("web") is None
    assert StateStore(tmp_path).list() == {}


def test_replace_keeps_single_file(tmp_path):
    store = StateStore(tmp_path)
    store.put(_record(image_id="sha256:1"))
    store.put(_record(image_id="sha256:2"))

    assert store.get("web").image_id == "sha256:2"
    assert [p.name for p in (tmp_path / "images").iterdir()] == ["web.json"]


def test_delete(tmp_path):
    store = StateStore(tmp_path)
    store.put(_record())

    store.delete("web")
    store.delete("web")

    assert store.get("web") is None


def test_list_skips_unreadable(tmp_path):
    store = StateStore(tmp_path)
    store.put(_record("web"))
    store.put(_record("api/v2"))
    (tmp_path / "images" / "broken.json").write_text("{not json")

    records = store.list()

    assert sorted(records) == ["api/v2", "web"]


def test_similar_keys_do_not_collide(tmp_path):
    store = StateStore(tmp_path)
    store.put(_record("a/b", image_id="sha256:1"))
    store.put(_record("a_b", image_id="sha256:2"))

    assert store.get("a/b").image_id == "sha256:1"
    assert store.get("a_b").image_id == "sha256:2"
    assert not (tmp_path / "b.json").exists()
