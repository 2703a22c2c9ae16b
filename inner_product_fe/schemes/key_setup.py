from dataclasses import dataclass
import logging
from typing import Sequence, Tuple

from inner_product_fe.schemes.errors import PreconditionViolation

"""
Master key setup and functional key derivation (key-issuer side).

The engines never see msk: they consume mpk and functional keys sk_y only.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MasterKeyPair:
    msk: Tuple[int, ...]
    mpk: tuple

    def __post_init__(self):
        if len(self.msk) != len(self.mpk):
            raise PreconditionViolation(
                f"msk has {len(self.msk)} components but mpk has {len(self.mpk)}")

    @property
    def dimension(self) -> int:
        return len(self.mpk)


def derive_functional_key(msk: Sequence[int], y: Sequence[int], order: int) -> int:
    '''sk_y = sum(msk[i] * y[i]) mod N'''
    if len(msk) != len(y):
        raise PreconditionViolation(
            f"Function vector has {len(y)} components, expected {len(msk)}")
    return sum(s * v for s, v in zip(msk, y)) % order


class KeySetup:
    def __init__(self, group, max_dim=32):
        self.group = group
        self.max_dim = max_dim

    def generate_master_key(self, n: int) -> MasterKeyPair:
        '''Key Generation:
        - s_i: random secret scalar in [1, N)
        - h_i = s_i * G'''
        self._check_dimension(n)
        msk = tuple(self.group.random_scalar() for _ in range(n))
        return self.master_key_from_secret(msk)

    def master_key_from_secret(self, msk: Sequence[int]) -> MasterKeyPair:
        '''Rebuild the key pair for a known msk (e.g. loaded by the key issuer).'''
        self._check_dimension(len(msk))
        for i, s in enumerate(msk):
            self.group.check_scalar(s, name=f"msk[{i}]")
        mpk = tuple(self.group.base_mul(s) for s in msk)
        logger.debug("Master key pair set up for dimension %d", len(msk))
        return MasterKeyPair(msk=tuple(msk), mpk=mpk)

    def derive_functional_key(self, msk: Sequence[int], y: Sequence[int]) -> int:
        for i, v in enumerate(y):
            self.group.check_scalar(v, name=f"y[{i}]")
        return derive_functional_key(msk, y, self.group.order)

    def derive_public_key(self, mpk, y: Sequence[int]):
        '''Public image of a functional key: sum(y_i * h_i) = sk_y * G.'''
        if len(mpk) != len(y):
            raise PreconditionViolation(
                f"Function vector has {len(y)} components, expected {len(mpk)}")
        for h in mpk:
            self.group.check_element(h)
        return self.group.linear_combination(mpk, y)

    def verify_functional_key(self, mpk, y: Sequence[int], sk_y: int) -> bool:
        '''Check a functional key against the master public key without msk.'''
        self.group.check_scalar(sk_y, name="sk_y")
        return self.derive_public_key(mpk, y) == self.group.base_mul(sk_y)

    def _check_dimension(self, n):
        if n < 1 or n > self.max_dim:
            raise PreconditionViolation(f"Dimension must be in [1, {self.max_dim}], got {n}")
