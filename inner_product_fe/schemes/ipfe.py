from dataclasses import dataclass
import logging
from typing import Sequence

from inner_product_fe.schemes.config import IPFEConfig
from inner_product_fe.schemes.dlog_table import DiscreteLogTable
from inner_product_fe.schemes.errors import PreconditionViolation
from inner_product_fe.schemes.group_arithmetic import create_group

"""
Inner product functional encryption (DDH-based, single encryptor).

Decryption with the functional key sk_y for y reveals <x, y> and nothing else
about x. The result is recovered from <x, y>*G through the discrete-log table,
so it must lie inside the table's populated range.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ciphertext:
    '''(c_0, c_1..c_n) with c_0 = rG and c_i = r*h_i + x_i*G.'''
    elements: tuple

    @property
    def c0(self):
        return self.elements[0]

    @property
    def body(self):
        return self.elements[1:]

    @property
    def dimension(self) -> int:
        return len(self.elements) - 1

    def __len__(self):
        return len(self.elements)

    def __iter__(self):
        return iter(self.elements)


class IPFEEngine:
    def __init__(self, group, table: DiscreteLogTable, max_dim=32):
        self.group = group
        self.table = table
        self.max_dim = max_dim

    @classmethod
    def from_config(cls, config: IPFEConfig = None) -> "IPFEEngine":
        config = config or IPFEConfig()
        group = create_group(config)
        return cls(group, DiscreteLogTable(group, config.table_capacity), config.max_dim)

    def init_table(self, start: int, count: int) -> int:
        return self.table.init_table(start, count)

    def lookup(self, point):
        return self.table.lookup(point)

    def encrypt(self, x: Sequence[int], mpk, r: int = None) -> Ciphertext:
        '''Encryption:
        - r: single-use random scalar in [1, N), drawn fresh when not given
        - c_0 = rG
        - c_i = r*h_i + x_i*G

        Reusing r under the same mpk leaks x - x' to anyone holding both
        ciphertexts. The engine does not detect it.
        '''
        n = len(x)
        self._check_dimension(n)
        if len(mpk) != n:
            raise PreconditionViolation(f"mpk has {len(mpk)} components, x has {n}")
        for i, x_i in enumerate(x):
            self.group.check_scalar(x_i, name=f"x[{i}]")
        for h in mpk:
            self.group.check_element(h)
        if r is None:
            r = self.group.random_scalar()
        self.group.check_scalar(r, name="r", allow_zero=False)

        c0 = self.group.base_mul(r)
        body = tuple(self.group.add(self.group.scalar_mul(h, r), self.group.base_mul(x_i))
                     for h, x_i in zip(mpk, x))
        logger.debug("Encrypted vector of dimension %d", n)
        return Ciphertext((c0,) + body)

    def decrypt(self, ct, sk_y: int, y: Sequence[int]) -> int:
        '''Decryption:
        - numerator = sum(y_i * c_i) over y_i > 0
        - denominator = sk_y * c_0
        - numerator - denominator = <x, y>*G, recovered through the table
        '''
        point = self._result_point(ct, sk_y, y)
        value = self.table.recover(point)
        logger.debug("Decrypted inner product for dimension %d", len(y))
        return value

    def _result_point(self, ct, sk_y, y):
        '''<x, y>*G. Never returned to callers of the multi-input scheme.'''
        ct = as_ciphertext(ct)
        self._check_dimension(len(y))
        if ct.dimension != len(y):
            raise PreconditionViolation(
                f"Ciphertext has dimension {ct.dimension}, function vector has {len(y)}")
        for i, y_i in enumerate(y):
            self.group.check_scalar(y_i, name=f"y[{i}]")
        self.group.check_scalar(sk_y, name="sk_y")
        for c in ct:
            self.group.check_element(c)

        numerator = self.group.linear_combination(ct.body, y)
        denominator = self.group.scalar_mul(ct.c0, sk_y)
        return self.group.add(numerator, self.group.negate(denominator))

    def _check_dimension(self, n):
        if n < 1 or n > self.max_dim:
            raise PreconditionViolation(f"Dimension must be in [1, {self.max_dim}], got {n}")


def as_ciphertext(ct) -> Ciphertext:
    if isinstance(ct, Ciphertext):
        return ct
    elements = tuple(ct)
    if len(elements) < 2:
        raise PreconditionViolation("A ciphertext holds at least two group elements")
    return Ciphertext(elements)
