"""
Configuration for Host-Parallel Execution

Controls how the CPU executor distributes index ranges over worker threads:
- Thread count (0 = auto-detect from the machine)
- Work distribution pattern (static, dynamic, guided)
- Chunk sizing and the serial fallback threshold
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple


class WorkDistribution(Enum):
    """Enumeration of work distribution patterns."""
    STATIC = "static"
    DYNAMIC = "dynamic"
    GUIDED = "guided"


@dataclass(frozen=True)
class ParallelConfig:
    """Configuration for host-parallel kernels.

    Attributes:
        num_threads: Number of worker threads (0 = one per available core)
        work_distribution: How the index range is split into chunks
        chunk_size: Fixed chunk size (0 = derived from the distribution)
        serial_threshold: Ranges shorter than this run on the calling thread
    """

    num_threads: int = 0
    work_distribution: WorkDistribution = WorkDistribution.STATIC
    chunk_size: int = 0
    serial_threshold: int = 0

    def __post_init__(self) -> None:
        """Validate the configuration after initialization."""
        if self.num_threads < 0:
            raise ValueError("num_threads must be non-negative")

        if self.chunk_size < 0:
            raise ValueError("chunk_size must be non-negative")

        if self.serial_threshold < 0:
            raise ValueError("serial_threshold must be non-negative")

        if not isinstance(self.work_distribution, WorkDistribution):
            # Accept the enum value, e.g. "dynamic"
            object.__setattr__(self, "work_distribution", WorkDistribution(self.work_distribution))

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "ParallelConfig":
        """Build a configuration from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ValueError(f"Unknown parallel options: {sorted(unknown)}. "
                             f"Available options: {sorted(known)}")
        return cls(**dict(options))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_threads": self.num_threads,
            "work_distribution": self.work_distribution.value,
            "chunk_size": self.chunk_size,
            "serial_threshold": self.serial_threshold,
        }

    @property
    def thread_count(self) -> int:
        """Effective number of worker threads."""
        if self.num_threads > 0:
            return self.num_threads
        return os.cpu_count() or 1


def create_work_chunks(total_work: int, config: ParallelConfig) -> List[Tuple[int, int]]:
    """Split ``range(total_work)`` into contiguous ``(start, stop)`` chunks.

    Chunks are ordered, non-overlapping and cover the range exactly.
    """
    if total_work <= 0:
        return []

    num_threads = config.thread_count
    chunks = []

    if config.chunk_size > 0:
        for start in range(0, total_work, config.chunk_size):
            chunks.append((start, min(start + config.chunk_size, total_work)))

    elif config.work_distribution == WorkDistribution.STATIC:
        # Equal-size chunks, one per thread
        chunk_size = max(1, -(-total_work // num_threads))
        for start in range(0, total_work, chunk_size):
            chunks.append((start, min(start + chunk_size, total_work)))

    elif config.work_distribution == WorkDistribution.DYNAMIC:
        # Smaller chunks for load balancing
        chunk_size = max(1, total_work // (num_threads * 4))
        for start in range(0, total_work, chunk_size):
            chunks.append((start, min(start + chunk_size, total_work)))

    else:
        # Guided scheduling: decreasing chunk sizes
        start = 0
        while start < total_work:
            remaining = total_work - start
            chunk_size = max(1, remaining // (num_threads * 2))
            chunks.append((start, start + chunk_size))
            start += chunk_size

    return chunks
