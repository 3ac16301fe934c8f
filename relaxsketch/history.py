"""
RelaxSketch - Undo/Redo History
===============================

Snapshot-Stacks über den gesamten Sketch-Zustand. Jeder Snapshot ist
eine tiefe Kopie; weder der gespeicherte noch der zurückgegebene
Zustand teilt Objekte mit dem aktiven Sketch.
"""

import copy
from typing import List, Optional, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from .sketch import Sketch


class SketchHistory:
    """Vergangenheits- und Zukunfts-Stack aus Sketch-Snapshots"""

    def __init__(self, limit: Optional[int] = None):
        self.past: List['Sketch'] = []
        self.future: List['Sketch'] = []
        self.limit = limit

    @staticmethod
    def snapshot(sketch: 'Sketch') -> 'Sketch':
        """Tiefe Kopie des Zustands vor einer Aktion (noch kein History-Eintrag)"""
        return copy.deepcopy(sketch)

    def commit(self, snapshot: 'Sketch') -> None:
        """
        Übernimmt einen Snapshot nach erfolgreicher Aktion.

        Erst hier wird die Redo-Kette verworfen und das Limit angewendet,
        abgelehnte Aktionen lassen beide Stacks unverändert.
        """
        self.past.append(snapshot)
        if self.limit is not None and len(self.past) > self.limit:
            del self.past[0]
        self.future.clear()
        logger.debug(f"[HISTORY] Snapshot gespeichert ({len(self.past)} rückgängig möglich)")

    def save(self, sketch: 'Sketch') -> None:
        """Legt den aktuellen Zustand ab; neue Aktionen verwerfen die Redo-Kette"""
        self.commit(self.snapshot(sketch))

    def undo(self, current: 'Sketch') -> Optional['Sketch']:
        """
        Stellt den letzten Snapshot wieder her.

        Returns:
            Wiederhergestellter Sketch oder None wenn nichts rückgängig zu machen ist
        """
        if not self.past:
            return None
        self.future.append(copy.deepcopy(current))
        restored = self.past.pop()
        logger.debug(f"[HISTORY] Undo ({len(self.past)} verbleibend, {len(self.future)} Redo)")
        return restored

    def redo(self, current: 'Sketch') -> Optional['Sketch']:
        if not self.future:
            return None
        self.past.append(copy.deepcopy(current))
        restored = self.future.pop()
        logger.debug(f"[HISTORY] Redo ({len(self.future)} verbleibend)")
        return restored

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()
