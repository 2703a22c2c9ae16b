"""
Discrete-log recovery table.

Maps k*G to k for k in the populated ranges. Decryption produces the inner
product only in exponentiated form, so this table is the one way back to an
integer. The identity (k = 0) is never stored; lookup resolves it directly.

Construction may run in parallel over disjoint blocks of k. Each worker seeds
its block with one scalar multiplication and walks forward by adding G. Inserts
into the shared map go through a lock; lookups never lock.
"""

import base64
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from inner_product_fe.schemes.config import is_power_of_two
from inner_product_fe.schemes.errors import DlogNotFound, PreconditionViolation, TableNotReady

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 65536


class DiscreteLogTable:
    def __init__(self, group, capacity=DEFAULT_CAPACITY):
        if not is_power_of_two(capacity):
            raise PreconditionViolation(f"Table capacity must be a power of two, got {capacity}")
        self.group = group
        self.capacity = capacity
        self._points = {}
        self._ranges: List[Tuple[int, int]] = []
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._points)

    @property
    def is_ready(self) -> bool:
        return bool(self._ranges)

    @property
    def populated_ranges(self) -> List[Tuple[int, int]]:
        """Merged half-open ranges [start, end) that are fully populated."""
        return list(self._ranges)

    def covers(self, k: int) -> bool:
        return any(lo <= k < hi for lo, hi in self._ranges)

    def init_table(self, start: int, count: int) -> int:
        """Populate [start, start + count). Already populated k are left untouched.

        Returns the number of new entries.
        """
        self._check_range(start, count)
        added = 0
        for lo, hi in self._missing(start, start + count):
            added += self._commit(lo, hi, self._walk(lo, hi))
        logger.info("Discrete-log table extended over [%d, %d): %d new entries",
                    start, start + count, added)
        return added

    def init_table_parallel(self, start: int, count: int, workers: int = 4) -> int:
        """Same as init_table, but the missing ranges are split into contiguous
        blocks walked by a thread pool."""
        self._check_range(start, count)
        if workers < 1:
            raise PreconditionViolation("workers must be at least 1")
        missing = self._missing(start, start + count)
        total = sum(hi - lo for lo, hi in missing)
        if total == 0:
            return 0
        block = -(-total // workers)
        blocks = []
        for lo, hi in missing:
            for b in range(lo, hi, block):
                blocks.append((b, min(b + block, hi)))

        added = 0
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._walk, lo, hi): (lo, hi) for lo, hi in blocks}
            for future in as_completed(futures):
                lo, hi = futures[future]
                added += self._commit(lo, hi, future.result())
        logger.info("Discrete-log table extended over [%d, %d) with %d blocks: %d new entries",
                    start, start + count, len(blocks), added)
        return added

    def lookup(self, point) -> Tuple[bool, Optional[int]]:
        """Read-only: (True, k) if point == k*G is in the table, else (False, None)."""
        if self.group.is_identity(point):
            return True, 0
        k = self._points.get(self.group.serialize(point))
        return k is not None, k

    def recover(self, point) -> int:
        """Discrete log of point, or TableNotReady / DlogNotFound."""
        if not self.is_ready:
            raise TableNotReady("Discrete-log table is empty. Call init_table() first.")
        found, k = self.lookup(point)
        if not found:
            raise DlogNotFound(
                f"Result not recoverable: outside populated ranges {self._ranges}",
                point_bytes=self.group.serialize(point))
        return k

    def save(self, path):
        '''Write the table as JSON: capacity, populated ranges and base64 point keys.'''
        with self._lock:
            data = {
                "capacity": self.capacity,
                "ranges": [list(r) for r in self._ranges],
                "points": {base64.b64encode(key).decode("ascii"): k
                           for key, k in self._points.items()},
            }
        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved discrete-log table with %d entries to %s", len(data["points"]), path)

    @classmethod
    def load(cls, group, path, verify=True) -> "DiscreteLogTable":
        '''Load a saved table.

        The file layout is always checked: ranges lie inside the capacity and
        every stored k is unique, non-zero and covered by a range. With verify,
        every range is walked again and each entry must match, so a table built
        for another group or with altered entries is rejected.
        '''
        with open(path) as f:
            data = json.load(f)
        table = cls(group, data["capacity"])
        points = {base64.b64decode(key): k for key, k in data["points"].items()}
        ranges = _merge((lo, hi) for lo, hi in data["ranges"])
        for lo, hi in ranges:
            if not (isinstance(lo, int) and isinstance(hi, int) and 0 <= lo < hi <= table.capacity):
                raise PreconditionViolation(
                    f"Range [{lo}, {hi}) is not inside table capacity {table.capacity}")
        values = set(points.values())
        if len(values) != len(points):
            raise PreconditionViolation("Table file maps several points to the same k")
        for k in values:
            if isinstance(k, bool) or not isinstance(k, int) or k < 1 or \
                    not any(lo <= k < hi for lo, hi in ranges):
                raise PreconditionViolation(f"Table entry k={k!r} is outside the populated ranges")
        expected = sum(hi - lo for lo, hi in ranges) - (1 if ranges and ranges[0][0] == 0 else 0)
        if len(points) != expected:
            raise PreconditionViolation(
                f"Table file holds {len(points)} points, ranges require {expected}")
        if verify:
            for lo, hi in ranges:
                for key, k in table._walk(lo, hi):
                    if points.get(key) != k:
                        raise PreconditionViolation(f"Table entry for k={k} does not match this group")
        table._points = points
        table._ranges = ranges
        logger.info("Loaded discrete-log table with %d entries from %s", len(points), path)
        return table

    def _check_range(self, start, count):
        if isinstance(start, bool) or not isinstance(start, int) or start < 0:
            raise PreconditionViolation(f"start must be a non-negative integer, got {start!r}")
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise PreconditionViolation(f"count must be a positive integer, got {count!r}")
        if start + count > self.capacity:
            raise PreconditionViolation(
                f"Range [{start}, {start + count}) exceeds table capacity {self.capacity}")

    def _missing(self, start, end):
        '''Sub-ranges of [start, end) not yet populated.'''
        missing = []
        cursor = start
        for lo, hi in self._ranges:
            if hi <= cursor:
                continue
            if lo >= end:
                break
            if lo > cursor:
                missing.append((cursor, lo))
            cursor = max(cursor, hi)
        if cursor < end:
            missing.append((cursor, end))
        return missing

    def _walk(self, lo, hi):
        '''(serialized k*G, k) for k in [lo, hi), seeded by lo*G then stepped by +G.'''
        g = self.group.generator
        point = self.group.base_mul(lo)
        entries = []
        for k in range(lo, hi):
            if k > 0:
                entries.append((self.group.serialize(point), k))
            if k + 1 < hi:
                point = self.group.add(point, g)
        logger.debug("Walked table block [%d, %d)", lo, hi)
        return entries

    def _commit(self, lo, hi, entries):
        added = 0
        with self._lock:
            for key, k in entries:
                if key not in self._points:
                    self._points[key] = k
                    added += 1
            self._ranges = _merge(self._ranges + [(lo, hi)])
        return added


def _merge(ranges):
    merged = []
    for lo, hi in sorted(ranges):
        if merged and lo <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], hi))
        else:
            merged.append((lo, hi))
    return merged
