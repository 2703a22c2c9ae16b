from abc import ABC, abstractmethod
import logging
import secrets

from charm.toolbox.ecgroup import ECGroup, ZR
from charm.toolbox import eccurve
from charm.toolbox.eccurve import secp256k1
from charm.core.math.elliptic_curve import getGenerator
from charm.toolbox.pairinggroup import PairingGroup, G1, ZR as PAIRING_ZR

from inner_product_fe.schemes.errors import PreconditionViolation

"""
Additive group arithmetic over a prime-order elliptic-curve group.

charm writes its groups multiplicatively: `P * Q` adds two points, `P ** k`
multiplies a point by a scalar and `P / Q` subtracts. The backends below wrap
that notation behind add / scalar_mul / negate / is_identity so the schemes
read like the textbook description of the protocol.

Two backends are provided:
1. PairingGroupArithmetic - G1 of a charm PairingGroup (BN254 by default)
2. ECGroupArithmetic - a charm ECGroup (secp256k1 by default, as the other schemes)
"""

logger = logging.getLogger(__name__)

GENERATOR_TAG = "inner-product-fe/generator/v1"
G1_PREFIX = str(G1).encode() + b":"


class GroupArithmetic(ABC):
    """Prime-order cyclic group with a fixed public generator G."""

    group = None

    @property
    @abstractmethod
    def generator(self):
        """Fixed public generator G."""

    @property
    @abstractmethod
    def identity(self):
        """Point at infinity."""

    @property
    @abstractmethod
    def order(self) -> int:
        """Group order N."""

    @abstractmethod
    def check_element(self, a):
        """Raise PreconditionViolation unless a is a point of this group."""

    def add(self, a, b):
        return a * b

    def negate(self, a):
        return self.identity / a

    def is_identity(self, a) -> bool:
        return a == self.identity

    def scalar_mul(self, a, k: int):
        '''Scalar multiplication k*a. k = 0 (mod N) yields the identity.'''
        k = k % self.order
        if k == 0 or self.is_identity(a):
            return self.identity
        return a ** self._scalar(k)

    def base_mul(self, k: int):
        '''k*G'''
        return self.scalar_mul(self.generator, k)

    def linear_combination(self, points, scalars):
        '''Sum of scalars[i]*points[i], skipping zero coefficients.'''
        acc = self.identity
        for point, k in zip(points, scalars):
            if k % self.order == 0:
                continue
            acc = self.add(acc, self.scalar_mul(point, k))
        return acc

    def random_scalar(self) -> int:
        '''Uniform scalar in [1, N).'''
        return secrets.randbelow(self.order - 1) + 1

    def serialize(self, a) -> bytes:
        return self.group.serialize(a)

    def deserialize(self, data: bytes):
        try:
            point = self.group.deserialize(data)
        except Exception as e:
            raise PreconditionViolation(f"Cannot deserialize group element: {e}") from e
        self.check_element(point)
        return point

    def check_scalar(self, k, name="scalar", allow_zero=True):
        '''Scalars are plain integers in [0, N).'''
        if isinstance(k, bool) or not isinstance(k, int):
            raise PreconditionViolation(f"{name} must be an integer, got {type(k).__name__}")
        if k < 0 or k >= self.order:
            raise PreconditionViolation(f"{name} out of range [0, N)")
        if not allow_zero and k == 0:
            raise PreconditionViolation(f"{name} must be non-zero")

    @abstractmethod
    def _scalar(self, k: int):
        """Convert an integer to the group's exponent type."""


class PairingGroupArithmetic(GroupArithmetic):
    """G1 of a charm PairingGroup.

    BN254 is the reference curve: a 254-bit prime order N over a distinct
    base field. G1 carries no canonical generator in charm, so G is derived by
    hashing a fixed tag to G1 unless one is passed in.
    """

    def __init__(self, group_name='BN254', generator=None):
        self.group_name = group_name
        self.group = PairingGroup(group_name)
        self._order = int(self.group.order())
        tagged = self.group.hash(GENERATOR_TAG, G1)
        self._identity = tagged / tagged
        if generator is None:
            generator = tagged
        self.check_element(generator)
        self._generator = generator
        if self.is_identity(self._generator):
            raise PreconditionViolation("Generator must not be the identity")
        logger.debug("Initialized pairing group backend %s", group_name)

    @property
    def generator(self):
        return self._generator

    @property
    def identity(self):
        return self._identity

    @property
    def order(self):
        return self._order

    def check_element(self, a):
        # ismember only tests against the element's own group, so G2, GT and ZR
        # elements pass it; the serialized type prefix pins the element to G1.
        try:
            if self.is_identity(a):
                return
            in_g1 = self.group.serialize(a).startswith(G1_PREFIX)
            member = in_g1 and self.group.ismember(a)
        except Exception as e:
            raise PreconditionViolation(f"Not a G1 element: {e}") from e
        if not in_g1:
            raise PreconditionViolation("Element is not in G1")
        if not member:
            raise PreconditionViolation("Point is not in the prime-order group")

    def _scalar(self, k):
        return self.group.init(PAIRING_ZR, k)


class ECGroupArithmetic(GroupArithmetic):
    """charm ECGroup with the curve's standard generator."""

    def __init__(self, curve=secp256k1):
        self.group = ECGroup(curve)
        self._generator = getGenerator(self.group.ec_group)
        self._order = int(self.group.order())
        self._identity = self._generator / self._generator

    @property
    def generator(self):
        return self._generator

    @property
    def identity(self):
        return self._identity

    @property
    def order(self):
        return self._order

    def check_element(self, a):
        try:
            if self.is_identity(a):
                return
            if self.group.coordinates(a) is None:
                raise PreconditionViolation("Point has no affine coordinates")
        except PreconditionViolation:
            raise
        except Exception as e:
            raise PreconditionViolation(f"Not a curve point: {e}") from e

    def _scalar(self, k):
        return self.group.init(ZR, k)


def create_group(config) -> GroupArithmetic:
    """Build the group backend named by an IPFEConfig."""
    if config.backend == "pairing":
        return PairingGroupArithmetic(config.group_name)
    curve = getattr(eccurve, config.ec_curve, None)
    if curve is None:
        raise PreconditionViolation(f"Unknown curve {config.ec_curve!r}")
    return ECGroupArithmetic(curve)
