from dataclasses import dataclass
import logging
from typing import Sequence

from charm.toolbox.pairinggroup import G2, ZR, pair

from inner_product_fe.schemes.errors import PreconditionViolation
from inner_product_fe.schemes.group_arithmetic import PairingGroupArithmetic
from inner_product_fe.schemes.ipfe import IPFEEngine, as_ciphertext
from inner_product_fe.schemes.key_setup import KeySetup

"""
Pairing-check interface of the function-private extension.

This is NOT function private: the key below does not hide y. Ciphertexts are
ordinary IPFE ciphertexts in G1. The key issuer moves y into G2 under a fresh
scalar t per key:
- d_i = (t * y_i) * g2
- d_0 = (t * sk_y) * g2
- d_t = t * g2

Then prod e(c_i, d_i) / e(c_0, d_0) = e(G, d_t)^<x, y>. This module stops at
producing the pairing inputs and checking a claimed value against them; the
claim itself comes from an off-core verifier or prover. It does not recover
<x, y> on its own.

Since d_i = y_i * d_t, any key holder recovers each small y_i by the same
bounded search used for decryption, and ratios of the d_i leak y without d_t.
Hiding y needs the second independent key pair and group layering, which is
not implemented here.
"""

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairingFunctionalKey:
    d0: object
    d: tuple
    d_t: object

    @property
    def dimension(self) -> int:
        return len(self.d)


@dataclass(frozen=True)
class PairingRequest:
    '''Everything a verifier needs: pairs (c_i, d_i), the (c_0, d_0) pair and d_t.'''
    pairs: tuple
    denominator: tuple
    base: tuple


class FunctionPrivateIPFE:
    def __init__(self, group_name='BN254', max_dim=16, g2=None):
        self.g1 = PairingGroupArithmetic(group_name)
        self.group = self.g1.group
        self.g2 = g2 if g2 is not None else self.group.random(G2)
        self._g2_identity = self.g2 / self.g2
        self.key_setup = KeySetup(self.g1, max_dim)
        self._engine = IPFEEngine(self.g1, None, max_dim)

    @property
    def max_dim(self):
        return self._engine.max_dim

    def setup(self, n: int):
        return self.key_setup.generate_master_key(n)

    def encrypt(self, x: Sequence[int], mpk, r: int = None):
        return self._engine.encrypt(x, mpk, r)

    def derive_pairing_key(self, msk: Sequence[int], y: Sequence[int]) -> PairingFunctionalKey:
        '''Key issuer side. A fresh t is drawn for every key; y stays recoverable from it.'''
        if len(y) < 1 or len(y) > self.max_dim:
            raise PreconditionViolation(f"Dimension must be in [1, {self.max_dim}], got {len(y)}")
        sk_y = self.key_setup.derive_functional_key(msk, y)
        t = self.g1.random_scalar()
        order = self.g1.order
        return PairingFunctionalKey(
            d0=self._g2_mul(t * sk_y % order),
            d=tuple(self._g2_mul(t * y_i % order) for y_i in y),
            d_t=self._g2_mul(t),
        )

    def pairing_request(self, ct, key: PairingFunctionalKey) -> PairingRequest:
        ct = as_ciphertext(ct)
        if ct.dimension != key.dimension:
            raise PreconditionViolation(
                f"Ciphertext has dimension {ct.dimension}, key has {key.dimension}")
        for c in ct:
            self.g1.check_element(c)
        pairs = tuple((c, d) for c, d in zip(ct.body, key.d) if d != self._g2_identity)
        return PairingRequest(pairs=pairs,
                              denominator=(ct.c0, key.d0),
                              base=(self.g1.generator, key.d_t))

    def verify_claim(self, request: PairingRequest, value: int) -> bool:
        '''Deferred check: prod e(c_i, d_i) / e(c_0, d_0) == e(G, d_t)^value.'''
        self.g1.check_scalar(value, name="value")
        lhs = self._pair_product(request.pairs) / pair(*request.denominator)
        rhs = self._gt_pow(pair(*request.base), value)
        result = lhs == rhs
        logger.debug("Pairing check over %d pairs: %s", len(request.pairs), result)
        return result

    def _pair_product(self, pairs):
        acc = None
        for c, d in pairs:
            e = pair(c, d)
            acc = e if acc is None else acc * e
        if acc is None:
            base = pair(self.g1.generator, self.g2)
            acc = base / base
        return acc

    def _g2_mul(self, k):
        if k == 0:
            return self._g2_identity
        return self.g2 ** self.group.init(ZR, k)

    def _gt_pow(self, base, k):
        if k % self.g1.order == 0:
            return base / base
        return base ** self.group.init(ZR, k)
