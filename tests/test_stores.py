import pytest

from context.transcript_store import InMemoryTranscriptStore
from db import SqlAnnotationStore, create_db_engine
from models.illustration import Annotation

pytestmark = pytest.mark.unit


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryTranscriptStore()
    return SqlAnnotationStore(create_db_engine("sqlite://"))


def test_messages_get_sequential_ids_and_keep_order(store):
    ids = [store.add_message("assistant", f"text {i}") for i in range(3)]

    assert ids == sorted(ids)
    assert [m.message_id for m in store.iter_messages()] == ids
    assert store.get_message(ids[1]).text == "text 1"
    assert store.get_message(999) is None


def test_annotation_round_trip_and_last_write_wins(store):
    message_id = store.add_message("assistant", "harbour at dawn")
    first = Annotation(url="https://a/1.jpg", query="harbour", source="commons", thumbnail_url="https://a/t1.jpg")
    second = Annotation(url="https://b/2.jpg", query="dawn", source="google", title="Dawn")

    assert store.get_annotation(message_id) is None
    store.set_annotation(message_id, first)
    assert store.get_annotation(message_id) == first
    store.set_annotation(message_id, second)

    assert store.get_annotation(message_id) == second
    assert store.get_message(message_id).annotation == second


def test_set_annotation_for_unknown_message_raises(store):
    with pytest.raises(KeyError):
        store.set_annotation(12345, Annotation(url="https://x", query="q", source="s"))


def test_roles_are_normalized(store):
    message_id = store.add_message(" User ", "hello")
    assert store.get_message(message_id).is_user


def test_sql_store_survives_new_store_instance():
    engine = create_db_engine("sqlite://")
    first = SqlAnnotationStore(engine)
    message_id = first.add_message("assistant", "The Forbidden City in winter snow.")
    first.set_annotation(message_id, Annotation(url="https://c/gugong.jpg", query="故宫", source="commons"))

    reopened = SqlAnnotationStore(engine)
    (message,) = list(reopened.iter_messages())

    assert message.annotation.query == "故宫"
    assert reopened.get_annotation(message_id).url == "https://c/gugong.jpg"


@pytest.mark.parametrize("store_type", [InMemoryTranscriptStore, SqlAnnotationStore])
def test_store_has_no_deletion_path(store_type):
    assert not any("delete" in name or "clear_annotation" in name for name in dir(store_type))
