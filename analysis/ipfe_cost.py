"""
Inner Product FE - cost measurements
Measures computation time and storage / communication costs for each role:
key issuer, encryptor, decryptor, table builder and MIFE aggregator.
"""

import time
import json
import random
import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from inner_product_fe.schemes.config import IPFEConfig
from inner_product_fe.schemes.dlog_table import DiscreteLogTable
from inner_product_fe.schemes.group_arithmetic import create_group
from inner_product_fe.schemes.ipfe import IPFEEngine
from inner_product_fe.schemes.key_setup import KeySetup
from inner_product_fe.schemes.mife import MIFEEngine


class IPFECostAnalysis:
    def __init__(self, config=None, dimension=5, value_bound=50, slots=2):
        self.config = config or IPFEConfig.from_env()
        # Largest MIFE result is slots * dimension * (value_bound - 1)^2
        largest = slots * dimension * (value_bound - 1) ** 2
        if largest >= self.config.table_capacity:
            raise ValueError(
                f"Inner products up to {largest} do not fit a table of {self.config.table_capacity}")
        self.dimension = dimension
        self.value_bound = value_bound
        self.slots = slots
        self.group = create_group(self.config)
        self.key_setup = KeySetup(self.group, self.config.max_dim)

        # The table is built once here; measure_table_build times a fresh one
        self.table = DiscreteLogTable(self.group, self.config.table_capacity)
        self.table.init_table_parallel(0, self.config.table_capacity, self.config.table_workers)
        self.engine = IPFEEngine(self.group, self.table, self.config.max_dim)

        self.keys = self.key_setup.generate_master_key(dimension)
        self.x = [random.randrange(value_bound) for _ in range(dimension)]
        self.y = [random.randrange(value_bound) for _ in range(dimension)]
        self.sk_y = self.key_setup.derive_functional_key(self.keys.msk, self.y)
        self.ct = self.engine.encrypt(self.x, self.keys.mpk)

    def _point_size(self, point):
        return len(self.group.serialize(point))

    def _scalar_size(self):
        return (self.group.order.bit_length() + 7) // 8

    def measure_key_issuer(self, iterations=100):
        """Master key generation plus one functional key derivation"""
        total_time = 0
        for _ in range(iterations):
            start_time = time.time()
            keys = self.key_setup.generate_master_key(self.dimension)
            self.key_setup.derive_functional_key(keys.msk, self.y)
            total_time += time.time() - start_time
        # msk and mpk are both kept by the issuer
        storage_size = self.dimension * self._scalar_size()
        storage_size += sum(self._point_size(h) for h in self.keys.mpk)
        return total_time / iterations * 1000, storage_size

    def measure_encryptor(self, iterations=100):
        total_time = 0
        for _ in range(iterations):
            start_time = time.time()
            self.engine.encrypt(self.x, self.keys.mpk)
            total_time += time.time() - start_time
        # Ciphertext sent to the decryptor
        communication_size = sum(self._point_size(c) for c in self.ct)
        return total_time / iterations * 1000, communication_size

    def measure_decryptor(self, iterations=100):
        total_time = 0
        for _ in range(iterations):
            start_time = time.time()
            value = self.engine.decrypt(self.ct, self.sk_y, self.y)
            total_time += time.time() - start_time
        assert value == sum(a * b for a, b in zip(self.x, self.y))
        # Functional key plus the function vector
        communication_size = (1 + self.dimension) * self._scalar_size()
        return total_time / iterations * 1000, communication_size

    def measure_table_build(self, count=4096):
        table = DiscreteLogTable(self.group, self.config.table_capacity)
        count = min(count, self.config.table_capacity)
        start_time = time.time()
        table.init_table_parallel(0, count, self.config.table_workers)
        elapsed = time.time() - start_time
        storage_size = sum(len(key) for key in table._points) + len(table) * self._scalar_size()
        return elapsed * 1000, storage_size

    def measure_mife(self, iterations=50):
        slots = self.slots
        mife = MIFEEngine(self.group, self.table, self.config.max_dim)
        keys = [self.key_setup.generate_master_key(self.dimension) for _ in range(slots)]
        for slot_id, k in enumerate(keys):
            mife.init_slot(slot_id, k.mpk)
        cts = [mife.encrypt_slot(s, self.x) for s in range(slots)]
        sks = [self.key_setup.derive_functional_key(k.msk, self.y) for k in keys]
        total_time = 0
        for _ in range(iterations):
            start_time = time.time()
            mife.decrypt_multi(cts, sks, [self.y] * slots)
            total_time += time.time() - start_time
        return total_time / iterations * 1000, slots * sum(self._point_size(c) for c in cts[0])

    def run_measurements(self):
        """Run all measurements and display results"""
        print("=" * 60)
        print("INNER PRODUCT FE - COST MEASUREMENTS")
        print("=" * 60)
        print(f"Backend: {self.config.backend}, dimension: {self.dimension}, "
              f"table capacity: {self.config.table_capacity}\n")

        results = {
            'key_issuer': self.measure_key_issuer(),
            'encryptor': self.measure_encryptor(),
            'decryptor': self.measure_decryptor(),
            'table_builder': self.measure_table_build(),
            'mife_aggregator': self.measure_mife(),
        }

        print(f"{'Role':<18} {'Computation (ms)':<20} {'Size (bytes)':<15}")
        print("-" * 53)
        for role, (elapsed, size) in results.items():
            print(f"{role:<18} {elapsed:<20.3f} {size:<15}")
        print("=" * 60)

        return {
            'computation': {role: elapsed for role, (elapsed, _) in results.items()},
            'size': {role: size for role, (_, size) in results.items()},
        }


if __name__ == "__main__":
    analysis = IPFECostAnalysis(IPFEConfig(table_capacity=65536))
    results = analysis.run_measurements()
    print(json.dumps(results, indent=2))
