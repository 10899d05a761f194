"""Bundled demo workloads.

Every workload takes ``(repetitions, worker)`` and repeats a fixed-size
computation, so its result (and expected value) does not depend on how
often it runs. Reference times are seconds for the normal argument on a
single core of a mid-range desktop CPU.
"""

from __future__ import annotations

import random

import numpy as np

from .suite.config import BenchmarkDefinition

SIEVE_LIMIT = 50_000
SQUARES_LIMIT = 100_000
COLLATZ_LIMIT = 10_000
MATRIX_SIZE = 200
SORT_SIZE = 20_000
WALK_STEPS = 100_000


def prime_sieve(repetitions: int, worker: int) -> int:
    count = 0
    for _ in range(repetitions or 1):
        flags = bytearray([1]) * SIEVE_LIMIT
        flags[0:2] = b"\x00\x00"
        for candidate in range(2, int(SIEVE_LIMIT**0.5) + 1):
            if flags[candidate]:
                flags[candidate * candidate :: candidate] = bytes(
                    len(range(candidate * candidate, SIEVE_LIMIT, candidate))
                )
        count = sum(flags)
    return count


def sum_of_squares(repetitions: int, worker: int) -> int:
    total = 0
    for _ in range(repetitions or 1):
        total = sum(value * value for value in range(SQUARES_LIMIT))
    return total


def longest_collatz(repetitions: int, worker: int) -> int:
    best_start = 1
    for _ in range(repetitions or 1):
        cache = {1: 0}
        best_start, best_steps = 1, 0
        for start in range(1, COLLATZ_LIMIT):
            path = []
            value = start
            while value not in cache:
                path.append(value)
                value = value // 2 if value % 2 == 0 else 3 * value + 1
            steps = cache[value]
            for item in reversed(path):
                steps += 1
                cache[item] = steps
            if cache[start] > best_steps:
                best_start, best_steps = start, cache[start]
    return best_start


def matrix_product(repetitions: int, worker: int) -> float:
    left = np.full((MATRIX_SIZE, MATRIX_SIZE), 2.0)
    right = np.eye(MATRIX_SIZE)
    total = 0.0
    for _ in range(repetitions or 1):
        total = float((left @ right).sum())
    return total


def shuffle_sort(repetitions: int, worker: int) -> bool:
    ordered = list(range(SORT_SIZE))
    result = True
    for _ in range(repetitions or 1):
        data = list(ordered)
        random.shuffle(data)
        result = sorted(data) == ordered
    return result


def random_walk(repetitions: int, worker: int) -> int:
    position = 0
    for _ in range(repetitions or 1):
        steps = np.random.choice((-1, 1), size=WALK_STEPS)
        position = int(steps.sum())
    return position


BENCHMARKS: dict[str, BenchmarkDefinition] = {
    "Prime sieve": BenchmarkDefinition(
        name="Prime sieve",
        func=prime_sieve,
        expected=5133,
        ref_time=0.55,
        quick_arg=5,
        normal_arg=200,
    ),
    "Sum of squares": BenchmarkDefinition(
        name="Sum of squares",
        func=sum_of_squares,
        expected=333_328_333_350_000,
        ref_time=0.6,
        quick_arg=2,
        normal_arg=100,
    ),
    "Longest Collatz": BenchmarkDefinition(
        name="Longest Collatz",
        func=longest_collatz,
        expected=6171,
        ref_time=0.7,
        quick_arg=1,
        normal_arg=50,
    ),
    "Matrix product": BenchmarkDefinition(
        name="Matrix product",
        func=matrix_product,
        expected=2.0 * MATRIX_SIZE * MATRIX_SIZE,
        ref_time=0.4,
        quick_arg=10,
        normal_arg=500,
    ),
    "Shuffle sort": BenchmarkDefinition(
        name="Shuffle sort",
        func=shuffle_sort,
        expected=True,
        ref_time=0.65,
        quick_arg=2,
        normal_arg=60,
    ),
    "Random walk": BenchmarkDefinition(
        name="Random walk",
        func=random_walk,
        ref_time=0.5,
        quick_arg=5,
        normal_arg=300,
    ),
}
