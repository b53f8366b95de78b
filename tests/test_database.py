import pytest

from database import RecordStore, StoreError, format_record, parse_record
from models import Location, Record

TALLINN = Location(59.4370, 24.7536)
TARTU = Location(58.3780, 26.7290)


def test_load_missing_file_is_empty(db_path):
    store = RecordStore.load(db_path)
    assert store.all() == {}
    assert not db_path.exists()


@pytest.mark.asyncio
async def test_upsert_location_writes_fixed_precision_line(db_path):
    store = RecordStore.load(db_path)
    await store.upsert_location(42, TALLINN)

    assert store.all() == {42: Record(TALLINN, None)}
    assert db_path.read_text() == "42 59.4370000 24.7536000\n"


@pytest.mark.asyncio
async def test_round_trip_after_reload(db_path):
    store = RecordStore.load(db_path)
    await store.upsert_location(42, TALLINN)
    await store.upsert_location(-1001, TARTU)
    await store.upsert_location(7, Location(-33.123456789, 151.2))
    await store.upsert_alert_timestamp(-1001, 1700000000)

    reloaded = RecordStore.load(db_path)

    assert reloaded.all() == {
        42: Record(TALLINN, None),
        -1001: Record(TARTU, 1700000000),
        7: Record(Location(-33.1234568, 151.2), None),
    }


@pytest.mark.asyncio
async def test_upsert_location_clears_alert_timestamp(db_path):
    store = RecordStore.load(db_path)
    await store.upsert_location(7, TALLINN)
    await store.upsert_alert_timestamp(7, 1000)

    await store.upsert_location(7, TARTU)

    assert store.get(7) == Record(TARTU, None)
    assert RecordStore.load(db_path).get(7) == Record(TARTU, None)


@pytest.mark.asyncio
async def test_alert_timestamp_for_unknown_key_is_ignored(db_path):
    store = RecordStore.load(db_path)
    await store.upsert_alert_timestamp(99, 1000)

    assert 99 not in store
    assert not db_path.exists()


@pytest.mark.asyncio
async def test_delete(db_path):
    store = RecordStore.load(db_path)
    await store.upsert_location(1, TALLINN)
    await store.upsert_location(2, TARTU)

    await store.delete(1)
    await store.delete(12345)

    assert store.all() == {2: Record(TARTU, None)}
    assert db_path.read_text() == "2 58.3780000 26.7290000\n"


def test_all_returns_a_copy(db_path):
    store = RecordStore(db_path, {1: Record(TALLINN, None)})
    snapshot = store.all()
    snapshot.clear()
    assert len(store) == 1


def test_load_skips_blank_lines(db_path):
    db_path.write_text("1 59.4370000 24.7536000\n\n2 58.3780000 26.7290000 1000\n")

    store = RecordStore.load(db_path)

    assert store.all() == {
        1: Record(TALLINN, None),
        2: Record(TARTU, 1000),
    }


@pytest.mark.parametrize(
    "line",
    [
        "42 59.4370000",
        "42 59.4370000 24.7536000 1000 extra",
        "abc 59.4370000 24.7536000",
        "42 north 24.7536000",
        "42 59.4370000 24.7536000 soon",
        "42 59.4370000 24.7536000 -5",
    ],
)
def test_malformed_record_is_fatal(db_path, line):
    db_path.write_text(f"1 59.4370000 24.7536000\n{line}\n")

    with pytest.raises(StoreError, match="line 2"):
        RecordStore.load(db_path)


def test_parse_and_format_record():
    key, record = parse_record("7 58.3780000 26.7290000 1700000000")

    assert key == 7
    assert record == Record(TARTU, 1700000000)
    assert format_record(key, record) == "7 58.3780000 26.7290000 1700000000\n"


@pytest.mark.asyncio
async def test_failed_write_rolls_back(tmp_path):
    store = RecordStore(tmp_path / "missing-dir" / "subscribers.db")

    with pytest.raises(StoreError):
        await store.upsert_location(1, TALLINN)

    assert store.all() == {}


@pytest.mark.asyncio
async def test_failed_write_restores_previous_record(tmp_path):
    store = RecordStore(tmp_path / "missing-dir" / "subscribers.db", {1: Record(TALLINN, 1000)})

    with pytest.raises(StoreError):
        await store.upsert_alert_timestamp(1, 2000)
    with pytest.raises(StoreError):
        await store.delete(1)

    assert store.get(1) == Record(TALLINN, 1000)
