from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .errors import InvalidInput


@dataclass
class Cell:
    index: int
    painted: bool = False
    owner: Optional[str] = None
    annotation: Optional[str] = None

    def to_dict(self) -> dict:
        data = {'index': self.index, 'painted': self.painted, 'owner': self.owner}
        if self.annotation is not None:
            data['annotation'] = self.annotation
        return data


class GridStore:
    """Fixed-size paint grid; the single source of truth for cell state.

    Paintedness is permanent. Owner and annotation follow last-write-wins, so
    repainting a cell succeeds and overwrites its attribution.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError('grid size must be positive')
        self.size = size
        self._painted = bytearray(size)
        self._owners: Dict[int, str] = {}
        self._annotations: Dict[int, str] = {}
        self._painted_count = 0

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < self.size:
            raise InvalidInput(f'Cell index out of range [0, {self.size})')

    def paint(self, index: int, owner: str, annotation: Optional[str] = None) -> Cell:
        self._check_index(index)
        if not self._painted[index]:
            self._painted[index] = 1
            self._painted_count += 1
        self._owners[index] = owner
        if annotation is None:
            self._annotations.pop(index, None)
        else:
            self._annotations[index] = annotation
        return self.cell(index)

    def cell(self, index: int) -> Cell:
        self._check_index(index)
        return Cell(
            index=index,
            painted=bool(self._painted[index]),
            owner=self._owners.get(index),
            annotation=self._annotations.get(index),
        )

    def count_painted(self) -> int:
        return self._painted_count

    def painted_fraction(self) -> float:
        return self._painted_count / self.size

    def grid(self) -> List[int]:
        return list(self._painted)

    def annotations(self) -> Dict[int, str]:
        return dict(self._annotations)

    def snapshot(self) -> dict:
        return {
            'grid': self.grid(),
            'owners': dict(self._owners),
            'annotations': self.annotations(),
        }

    def load(self, grid: Iterable, owners: dict, annotations: dict) -> None:
        """Replace all state from a persisted snapshot.

        Out-of-range or malformed entries are skipped rather than rejected.
        """
        painted = bytearray(self.size)
        for i, value in enumerate(grid or []):
            if i >= self.size:
                break
            painted[i] = 1 if value else 0
        self._painted = painted
        self._painted_count = sum(painted)
        self._owners = _index_map(owners, self.size)
        self._annotations = _index_map(annotations, self.size)


def _index_map(raw: Optional[dict], size: int) -> Dict[int, str]:
    # JSON object keys arrive as strings
    out: Dict[int, str] = {}
    for key, value in (raw or {}).items():
        try:
            idx = int(key)
        except (TypeError, ValueError):
            continue
        if 0 <= idx < size and isinstance(value, str):
            out[idx] = value
    return out
