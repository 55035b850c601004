import pytest

from route_optimizer.errors import ValidationError
from route_optimizer.models.domain import Stop
from route_optimizer.services.routing.ordering_store import OrderingStore


def _stop(stop_id: str, duration: float = 30, address: str | None = "1 Main St") -> Stop:
    return Stop(id=stop_id, title=f"Job {stop_id}", estimated_duration_minutes=duration, address=address)


def _store(*ids: str) -> OrderingStore:
    return OrderingStore([_stop(stop_id) for stop_id in ids])


def test_reorder_moves_stop_and_shifts_others():
    store = _store("A", "B", "C", "D")
    store.reorder(0, 2)
    assert store.ids() == ["B", "C", "A", "D"]

    store.reorder(3, 0)
    assert store.ids() == ["D", "B", "C", "A"]


def test_reorder_preserves_stop_set():
    store = _store("A", "B", "C", "D", "E")
    moves = [(0, 4), (4, 1), (2, 3), (1, 0), (3, 3)]
    for from_index, to_index in moves:
        store.reorder(from_index, to_index)
        assert sorted(store.ids()) == ["A", "B", "C", "D", "E"]
        assert len(store) == 5


def test_reorder_same_index_does_not_notify():
    store = _store("A", "B", "C")
    events: list[str] = []
    store.subscribe(events.append)
    version = store.version

    store.reorder(1, 1)

    assert store.ids() == ["A", "B", "C"]
    assert events == []
    assert store.version == version


def test_reorder_out_of_range_raises_and_leaves_order():
    store = _store("A", "B", "C")
    with pytest.raises(IndexError):
        store.reorder(0, 3)
    with pytest.raises(IndexError):
        store.reorder(-1, 1)
    assert store.ids() == ["A", "B", "C"]


def test_mutations_notify_subscribers_and_bump_version():
    store = _store("A", "B", "C")
    events: list[str] = []
    unsubscribe = store.subscribe(events.append)

    store.reorder(0, 1)
    store.replace_ordering([_stop("C"), _stop("A"), _stop("B")])
    assert events == ["reorder", "replace"]
    assert store.version == 3

    unsubscribe()
    store.reorder(0, 1)
    assert events == ["reorder", "replace"]


def test_replace_ordering_accepts_permutation():
    store = _store("A", "B", "C")
    original = {stop.id: stop for stop in store.get_ordering()}

    store.replace_ordering([_stop("C", duration=99), _stop("A"), _stop("B")])

    assert store.ids() == ["C", "A", "B"]
    # store keeps its own records
    assert store.get_ordering()[0] is original["C"]
    assert store.get_ordering()[0].estimated_duration_minutes == 30


@pytest.mark.parametrize(
    "ids",
    [
        ["A", "B"],
        ["A", "B", "C", "D"],
        ["A", "B", "B"],
        ["A", "B", "X"],
    ],
)
def test_replace_ordering_rejects_non_permutations(ids):
    store = _store("A", "B", "C")
    events: list[str] = []
    store.subscribe(events.append)

    with pytest.raises(ValidationError):
        store.replace_ordering([_stop(stop_id) for stop_id in ids])

    assert store.ids() == ["A", "B", "C"]
    assert events == []


def test_initialize_rejects_duplicate_ids():
    with pytest.raises(ValidationError):
        _store("A", "B", "A")


def test_get_ordering_returns_copy():
    store = _store("A", "B")
    ordering = store.get_ordering()
    ordering.reverse()
    assert store.ids() == ["A", "B"]


def test_discard_removes_known_stop_only():
    store = _store("A", "B", "C")
    assert store.discard("B") is True
    assert store.ids() == ["A", "C"]
    assert store.discard("missing") is False
    assert store.index_of("C") == 1
    assert store.index_of("B") is None
