"""
Runtime configuration for the IPFE engines.
"""

import os
from dataclasses import dataclass
from typing import Optional

from inner_product_fe.schemes.errors import PreconditionViolation

BACKENDS = ("pairing", "ec")


@dataclass
class IPFEConfig:
    """Engine configuration.

    Attributes:
        backend: "pairing" for G1 of a charm PairingGroup, "ec" for a charm ECGroup
        group_name: pairing group parameters (pairing backend)
        ec_curve: curve name from charm.toolbox.eccurve (ec backend)
        max_dim: largest vector dimension for single-layer encryption
        layered_max_dim: largest vector dimension for the function-private variant
        table_capacity: upper bound K_max of the discrete-log table
        table_workers: threads used by parallel table construction
        max_slots: optional cap on the number of multi-input slots
    """
    backend: str = "pairing"
    group_name: str = "BN254"
    ec_curve: str = "secp256k1"
    max_dim: int = 32
    layered_max_dim: int = 16
    table_capacity: int = 65536
    table_workers: int = 4
    max_slots: Optional[int] = None

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise PreconditionViolation(
                f"Unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.max_dim < 1 or self.layered_max_dim < 1:
            raise PreconditionViolation("Dimension bounds must be positive")
        if not is_power_of_two(self.table_capacity):
            raise PreconditionViolation(
                f"Table capacity must be a power of two, got {self.table_capacity}")
        if self.table_workers < 1:
            raise PreconditionViolation("table_workers must be at least 1")
        if self.max_slots is not None and self.max_slots < 1:
            raise PreconditionViolation("max_slots must be at least 1")

    @classmethod
    def from_env(cls, environ=None) -> "IPFEConfig":
        """Build a config from IPFE_* environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        kwargs = {}
        for name, cast in (("backend", str), ("group_name", str), ("ec_curve", str),
                           ("max_dim", int), ("layered_max_dim", int),
                           ("table_capacity", int), ("table_workers", int),
                           ("max_slots", int)):
            raw = env.get("IPFE_" + name.upper())
            if raw is None or raw == "":
                continue
            try:
                kwargs[name] = cast(raw)
            except ValueError as e:
                raise PreconditionViolation(
                    f"Invalid value for IPFE_{name.upper()}: {raw!r}") from e
        return cls(**kwargs)


def is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0
