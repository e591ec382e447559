import threading
import uuid

from app.services.metadata_cache import MetadataCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entry_valid_until_timeout(movie_meta):
    clock = FakeClock()
    cache = MetadataCache(timeout=300, timer=clock)
    item_id = uuid.uuid4()
    cache.put(item_id, movie_meta)

    clock.now += 299
    assert cache.get(item_id) == movie_meta
    assert item_id in cache

    clock.now += 2
    assert cache.get(item_id) is None
    assert item_id not in cache


def test_entry_valid_at_exactly_timeout(movie_meta):
    clock = FakeClock()
    cache = MetadataCache(timeout=300, timer=clock)
    item_id = uuid.uuid4()
    cache.put(item_id, movie_meta)

    clock.now += 300
    assert cache.get(item_id) == movie_meta

    clock.now += 0.5
    assert cache.get(item_id) is None
    assert len(cache) == 0


def test_put_overwrites_and_restamps(movie_meta, series_meta):
    clock = FakeClock()
    cache = MetadataCache(timeout=10, timer=clock)
    item_id = uuid.uuid4()

    cache.put(item_id, movie_meta)
    clock.now += 8
    cache.put(item_id, series_meta)
    clock.now += 8

    assert cache.get(item_id) == series_meta


def test_remove_and_clear(movie_meta):
    cache = MetadataCache()
    ids = [uuid.uuid4() for _ in range(3)]
    for item_id in ids:
        cache.put(item_id, movie_meta)

    cache.remove(ids[0])
    cache.remove(uuid.uuid4())  # unknown ids are ignored
    assert cache.get(ids[0]) is None
    assert len(cache) == 2

    assert cache.clear() == 2
    assert len(cache) == 0


def test_maxsize_bounds_entries(movie_meta):
    cache = MetadataCache(maxsize=2)
    for _ in range(5):
        cache.put(uuid.uuid4(), movie_meta)

    assert len(cache) == 2


def test_concurrent_writers(movie_meta):
    cache = MetadataCache(maxsize=10_000)

    def writer():
        for _ in range(200):
            item_id = uuid.uuid4()
            cache.put(item_id, movie_meta)
            assert cache.get(item_id) == movie_meta

    threads = [threading.Thread(target=writer) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 1600
