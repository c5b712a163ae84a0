import logging
import threading
import time
from concurrent.futures import Future

from cachetools import LRUCache, TTLCache

from settings import DEFAULT_TTLS

logger = logging.getLogger(__name__)

# Games only ever move forward through these states
STATUS_ORDER = {'Preview': 0, 'Live': 1, 'Final': 2}


class ResourceCache:
    """Keyed in-memory store for mapped upstream data.

    Every resource kind (teams, games, standings, ...) gets its own namespace
    with a fixed TTL. An entry is fresh while ``clock() - stored_at < ttl``.
    Stale entries stay readable until they reach ``max_age_factor * ttl``, at
    which point the backing ``TTLCache`` drops them; each kind is also capped
    at ``max_entries`` with least-recently-used eviction.

    Concurrent misses on the same key are coalesced: the first caller runs
    the fetch, later callers wait on its result.
    """

    def __init__(self, ttls=None, max_entries=500, max_age_factor=4, clock=time.monotonic):
        self.ttls = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)
        self.max_entries = max_entries
        self.max_age_factor = max_age_factor
        self._clock = clock
        self._stores = {}
        self._inflight = {}
        self._lock = threading.Lock()

    def ttl(self, kind):
        try:
            return self.ttls[kind]
        except KeyError:
            raise KeyError(f"Unknown resource kind: {kind}")

    def _store(self, kind):
        store = self._stores.get(kind)
        if store is None:
            max_age = self.ttl(kind) * self.max_age_factor
            store = self._stores[kind] = TTLCache(maxsize=self.max_entries, ttl=max_age, timer=self._clock)
        return store

    def _lookup(self, kind, key):
        entry = self._store(kind).get(key)
        if entry is None:
            return None, False
        value, stored_at = entry
        return value, self._clock() - stored_at < self.ttl(kind)

    def get(self, kind, key):
        """Return ``(value, fresh)``; ``(None, False)`` when nothing is stored."""
        with self._lock:
            return self._lookup(kind, key)

    def put(self, kind, key, value):
        # TTLCache sweeps entries past max age on every write
        with self._lock:
            self._store(kind)[key] = (value, self._clock())

    def purge(self):
        """Drop entries past their max age across every kind."""
        removed = 0
        with self._lock:
            for store in self._stores.values():
                removed += len(store.expire())
        if removed:
            logger.debug(f"Purged {removed} expired cache entries")
        return removed

    def entries(self, kind):
        """List ``(key, value, fresh)`` for every stored entry of a kind."""
        with self._lock:
            now = self._clock()
            ttl = self.ttl(kind)
            return [
                (key, value, now - stored_at < ttl)
                for key, (value, stored_at) in list(self._store(kind).items())
            ]

    def get_or_fetch(self, kind, key, fetch):
        """Serve a fresh entry, or run ``fetch()`` once and store its result."""
        with self._lock:
            value, fresh = self._lookup(kind, key)
            if fresh:
                logger.debug(f"Cache hit for {kind}:{key}")
                return value
            future = self._inflight.get((kind, key))
            owner = future is None
            if owner:
                future = Future()
                self._inflight[(kind, key)] = future

        if not owner:
            logger.debug(f"Joining in-flight fetch for {kind}:{key}")
            return future.result()

        logger.debug(f"Cache miss for {kind}:{key}")
        try:
            value = fetch()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            self.put(kind, key, value)
            future.set_result(value)
            return value
        finally:
            with self._lock:
                self._inflight.pop((kind, key), None)


class GameStatusLedger:
    """Remembers the furthest status served for each game.

    Upstream occasionally reports a finished game as live again for a poll or
    two; ``reconcile`` hides those regressions by replaying the last snapshot
    served at the further status.
    """

    def __init__(self, max_games=5000):
        self._seen = LRUCache(maxsize=max_games)
        self._lock = threading.Lock()

    def reconcile(self, game, view='list'):
        game_id = game.get('id')
        status = game.get('abstractStatus')
        if game_id is None or status not in STATUS_ORDER:
            return game

        with self._lock:
            previous = self._seen.get((view, game_id))
            if previous is not None and STATUS_ORDER[previous['abstractStatus']] > STATUS_ORDER[status]:
                logger.warning(
                    f"Game {game_id} reported {status} after {previous['abstractStatus']}, keeping last snapshot"
                )
                return previous
            self._seen[(view, game_id)] = game
        return game

    def reconcile_all(self, games, view='list'):
        return [self.reconcile(game, view) for game in games]
