from dataclasses import dataclass
import logging
import threading
from typing import Dict, Optional, Sequence

from inner_product_fe.schemes.config import IPFEConfig
from inner_product_fe.schemes.dlog_table import DiscreteLogTable
from inner_product_fe.schemes.errors import PreconditionViolation, SlotStateError
from inner_product_fe.schemes.group_arithmetic import create_group
from inner_product_fe.schemes.ipfe import IPFEEngine, as_ciphertext

"""
Multi-input inner product functional encryption.

Each slot is an independent encryptor with its own master key pair. Slot
ciphertexts are produced separately; decryption sums the per-slot result
points and performs a single table lookup, so only
sum_s <x_s, y_s> is revealed and no per-slot inner product is.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    slot_id: int
    mpk: tuple

    @property
    def dimension(self) -> int:
        return len(self.mpk)


class MIFEEngine:
    def __init__(self, group, table: DiscreteLogTable, max_dim=32, max_slots: Optional[int] = None):
        self.group = group
        self.table = table
        self.max_slots = max_slots
        self._engine = IPFEEngine(group, table, max_dim)
        self._slots: Dict[int, Slot] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: IPFEConfig = None) -> "MIFEEngine":
        config = config or IPFEConfig()
        group = create_group(config)
        return cls(group, DiscreteLogTable(group, config.table_capacity),
                   config.max_dim, config.max_slots)

    @property
    def max_dim(self):
        return self._engine.max_dim

    @property
    def initialized_slots(self):
        return sorted(self._slots)

    def slot_dimension(self, slot_id: int) -> int:
        return self._slot(slot_id).dimension

    def init_table(self, start: int, count: int) -> int:
        return self.table.init_table(start, count)

    def lookup(self, point):
        return self.table.lookup(point)

    def init_slot(self, slot_id: int, mpk) -> Slot:
        '''Register the master public key of one slot. Each slot id is accepted once.'''
        self._check_slot_id(slot_id)
        mpk = tuple(mpk)
        self._engine._check_dimension(len(mpk))
        for h in mpk:
            self.group.check_element(h)
        with self._lock:
            if slot_id in self._slots:
                raise SlotStateError(f"Slot {slot_id} is already initialized")
            if self.max_slots is not None and len(self._slots) >= self.max_slots:
                raise PreconditionViolation(f"At most {self.max_slots} slots can be initialized")
            slot = Slot(slot_id, mpk)
            self._slots[slot_id] = slot
        logger.info("Initialized slot %d with dimension %d", slot_id, slot.dimension)
        return slot

    def encrypt_slot(self, slot_id: int, x: Sequence[int], r: int = None):
        '''Encrypt x under the slot's own mpk. r must never be shared across slots
        or reused within one.'''
        slot = self._slot(slot_id)
        if len(x) != slot.dimension:
            raise PreconditionViolation(
                f"Slot {slot_id} has dimension {slot.dimension}, x has {len(x)}")
        return self._engine.encrypt(x, slot.mpk, r)

    def decrypt_multi(self, ciphertexts, functional_keys: Sequence[int], ys, slot_ids=None) -> int:
        '''Recover sum_s <x_s, y_s>.

        ciphertexts, functional_keys and ys are given per slot, in the order of
        slot_ids (0..S-1 when omitted).
        '''
        ciphertexts = [as_ciphertext(ct) for ct in ciphertexts]
        if slot_ids is None:
            slot_ids = list(range(len(ciphertexts)))
        if not ciphertexts:
            raise PreconditionViolation("decrypt_multi needs at least one slot")
        if not (len(ciphertexts) == len(functional_keys) == len(ys) == len(slot_ids)):
            raise PreconditionViolation(
                "ciphertexts, functional_keys, ys and slot_ids must have the same length")
        if len(set(slot_ids)) != len(slot_ids):
            raise PreconditionViolation("Each slot may contribute only once")

        total = self.group.identity
        for slot_id, ct, sk_y, y in zip(slot_ids, ciphertexts, functional_keys, ys):
            slot = self._slot(slot_id)
            if ct.dimension != slot.dimension or len(y) != slot.dimension:
                raise PreconditionViolation(
                    f"Slot {slot_id} has dimension {slot.dimension}, got ciphertext "
                    f"dimension {ct.dimension} and function vector length {len(y)}")
            total = self.group.add(total, self._engine._result_point(ct, sk_y, y))
        value = self.table.recover(total)
        logger.debug("Decrypted sum of inner products over %d slots", len(slot_ids))
        return value

    def _slot(self, slot_id) -> Slot:
        self._check_slot_id(slot_id)
        slot = self._slots.get(slot_id)
        if slot is None:
            raise SlotStateError(f"Slot {slot_id} is not initialized")
        return slot

    def _check_slot_id(self, slot_id):
        if isinstance(slot_id, bool) or not isinstance(slot_id, int) or slot_id < 0:
            raise PreconditionViolation(f"Slot id must be a non-negative integer, got {slot_id!r}")
