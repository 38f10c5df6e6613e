"""View-model over the in-memory working set of memories."""

from dataclasses import dataclass, field

from .media import DisplayHandleCache
from .memory.models import Memory, SortMode


@dataclass
class YearGroup:
    """Memories sharing a year, newest first."""

    year: str
    items: list[Memory] = field(default_factory=list)


def _year_key(year: str) -> tuple[int, float, str]:
    """Numeric years first in ascending order, anything else after."""
    try:
        return (0, float(year), year)
    except ValueError:
        return (1, 0.0, year)


def _newest_first(memory: Memory) -> tuple[int, str]:
    return (-memory.created_at, memory.id)


def _hottest_first(memory: Memory) -> tuple[int, int, str]:
    return (-memory.likes, -memory.created_at, memory.id)


class MemoryViewModel:
    """Owns the working set and exposes derived projections.

    Projections are recomputed on every read. The sync engine is the only
    writer; everything else reads.
    """

    def __init__(
        self,
        handles: DisplayHandleCache | None = None,
        sort_mode: SortMode = SortMode.TIME,
    ) -> None:
        self.handles = handles if handles is not None else DisplayHandleCache()
        self.sort_mode = sort_mode
        self.memories: list[Memory] = []

    @property
    def sorted_memories(self) -> list[Memory]:
        """Working set in the current sort mode."""
        key = _hottest_first if self.sort_mode == SortMode.HEAT else _newest_first
        return sorted(self.memories, key=key)

    @property
    def years(self) -> list[str]:
        """Distinct years in ascending numeric order."""
        return sorted({m.year for m in self.memories}, key=_year_key)

    @property
    def grouped_by_year(self) -> list[YearGroup]:
        """Working set partitioned by year."""
        buckets: dict[str, list[Memory]] = {}
        for memory in self.memories:
            buckets.setdefault(memory.year, []).append(memory)
        return [
            YearGroup(year=year, items=sorted(buckets[year], key=_newest_first))
            for year in self.years
        ]

    def get(self, memory_id: str) -> Memory | None:
        """Find a memory in the working set."""
        for memory in self.memories:
            if memory.id == memory_id:
                return memory
        return None

    def prepend(self, memory: Memory) -> None:
        self.memories.insert(0, memory)

    def replace(self, memory: Memory) -> None:
        """Swap the working-set entry with the same id, or prepend it."""
        for index, existing in enumerate(self.memories):
            if existing.id == memory.id:
                self.memories[index] = memory
                return
        self.prepend(memory)

    def replace_all(self, memories: list[Memory]) -> None:
        self.memories = list(memories)

    def remove(self, memory_id: str) -> Memory | None:
        """Drop a memory from the working set and release its display handle."""
        for index, existing in enumerate(self.memories):
            if existing.id == memory_id:
                self.handles.release(memory_id)
                return self.memories.pop(index)
        return None

    def close(self) -> int:
        """Release every display handle at session end."""
        return self.handles.release_all()
