"""
Local Content Store Benchmark Script
Measure client throughput and latency on the current environment
"""

import asyncio
import random
import statistics
import time
from typing import Awaitable, Callable, List

import psutil

from localstore import ClientConfig, LocalClient


class Benchmark:
    def __init__(self):
        self.client = LocalClient(ClientConfig(dataset='benchmark', log_level='error'))
        self.results = {}
        self.events = 0

    async def setup(self):
        """Register a listener so every mutation pays the dispatch cost"""
        self.client.listen('*').subscribe(self._count_event)
        print("✓ Listener registered")

    def _count_event(self, event):
        self.events += 1

    def _record(self, name: str, times: List[float]):
        total_time = sum(times)
        count = len(times)
        ops_per_sec = count / total_time if total_time else float('inf')
        avg_latency = statistics.mean(times) * 1000
        p99_latency = sorted(times)[min(count - 1, int(count * 0.99))] * 1000

        self.results[name] = {
            "ops_per_sec": ops_per_sec,
            "avg_latency_ms": avg_latency,
            "p99_latency_ms": p99_latency,
            "total_time": total_time
        }

        print(f"   Ops/sec: {ops_per_sec:,.0f}")
        print(f"   Avg latency: {avg_latency:.3f}ms")
        print(f"   P99 latency: {p99_latency:.3f}ms")

    async def _measure(self, name: str, count: int, operation: Callable[[int], Awaitable]):
        times = []
        for i in range(count):
            start = time.perf_counter()
            await operation(i)
            times.append(time.perf_counter() - start)
        self._record(name, times)

    async def benchmark_create(self, count: int = 1000):
        """Benchmark single-document creates"""
        print(f"\n📝 Testing CREATE ({count} documents)...")

        async def create(i: int):
            await self.client.create({
                '_id': f'user-{i}',
                '_type': f'type{i % 10}',
                'username': f'user_{i}',
                'xp': i * 15,
                'data': {'badges': ['member']}
            })

        await self._measure('create', count, create)

    async def benchmark_fetch_by_id(self, count: int = 1000):
        """Benchmark by-id fetches"""
        print(f"\n🔍 Testing FETCH by ID ({count} queries)...")

        async def fetch(i: int):
            await self.client.fetch(f'user-{i % 500}')

        await self._measure('fetch_by_id', count, fetch)

    async def benchmark_fetch_by_type(self, count: int = 200):
        """Benchmark parameterized by-type fetches (full scan)"""
        print(f"\n🔍 Testing FETCH by type ({count} queries)...")

        async def fetch(i: int):
            await self.client.fetch('*[_type == $t]', {'t': f'type{i % 10}'})

        await self._measure('fetch_by_type', count, fetch)

    async def benchmark_patch(self, count: int = 500):
        """Benchmark committed patches"""
        print(f"\n✏️ Testing PATCH ({count} operations)...")

        async def patch(i: int):
            await self.client.patch(f'user-{i % 500}', {'xp': i * 20}).commit()

        await self._measure('patch', count, patch)

    async def benchmark_transaction(self, count: int = 200, size: int = 10):
        """Benchmark batched transactions"""
        print(f"\n📦 Testing TRANSACTION ({count} commits of {size} mutations)...")

        async def commit(i: int):
            transaction = self.client.transaction()
            for j in range(size):
                transaction.create({'_id': f'tx-{i}-{j}', '_type': 'batch', 'n': j})
            for j in range(size):
                transaction.delete(f'tx-{i}-{j}')
            await transaction.commit()

        await self._measure('transaction', count, commit)

    async def benchmark_mixed_workload(self, count: int = 1000):
        """Benchmark mixed read/write (80% read, 20% write)"""
        print(f"\n🔄 Testing MIXED workload ({count} operations, 80% read)...")

        async def mixed(i: int):
            document_id = f'user-{random.randint(0, 499)}'
            if random.random() < 0.8:
                await self.client.fetch(document_id)
            else:
                await self.client.patch(document_id, {'xp': random.randint(0, 10000)}).commit()

        await self._measure('mixed', count, mixed)

    async def cleanup(self):
        """Remove test data"""
        await self.client.store.clear()
        print("\n✓ Cleanup complete")

    def print_summary(self):
        """Print final summary"""
        print("\n" + "="*60)
        print("📊 BENCHMARK SUMMARY")
        print("="*60)

        process = psutil.Process()
        mem = process.memory_info()

        print(f"\n💻 System Info:")
        print(f"   CPU cores: {psutil.cpu_count()}")
        print(f"   RAM total: {psutil.virtual_memory().total / (1024**3):.1f} GB")
        print(f"   RAM used by test: {mem.rss / (1024**2):.1f} MB")
        print(f"   Documents held: {self.client.store.count()}")
        print(f"   Events delivered: {self.events}")

        print(f"\n📈 Results:")
        print(f"   {'Operation':<25} {'Ops/sec':>12} {'Avg Latency':>15}")
        print(f"   {'-'*25} {'-'*12} {'-'*15}")

        for op, data in self.results.items():
            print(f"   {op:<25} {data['ops_per_sec']:>12,.0f} {data['avg_latency_ms']:>12.3f} ms")


async def main():
    print("="*60)
    print("🔥 Local Content Store Benchmark")
    print("="*60)

    bench = Benchmark()

    try:
        await bench.setup()
        await bench.benchmark_create(1000)
        await bench.benchmark_fetch_by_id(1000)
        await bench.benchmark_fetch_by_type(200)
        await bench.benchmark_patch(500)
        await bench.benchmark_transaction(200)
        await bench.benchmark_mixed_workload(1000)
        bench.print_summary()
    finally:
        await bench.cleanup()


if __name__ == "__main__":
    asyncio.run(main())
