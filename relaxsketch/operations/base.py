"""
RelaxSketch - Base Classes for Sketch Operations
================================================

Abstrakte Basisklassen für die abgeleiteten Konstruktions-Operationen
(Fillet, Trim/Split, Intersection).

Operationen mutieren nur die Entity-Listen des Sketches. Den Solve
danach übernimmt der Aufrufer (SketchSession), damit pro Benutzeraktion
genau ein Solve läuft.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, TYPE_CHECKING
from enum import Enum, auto

if TYPE_CHECKING:
    from relaxsketch.sketch import Sketch


class ResultStatus(Enum):
    """Status einer Operation."""
    SUCCESS = auto()
    WARNING = auto()  # Erfolgreich, aber mit Einschränkungen (z.B. Radius reduziert)
    NO_TARGET = auto()  # Auswahl passt nicht, nichts verändert
    NO_INTERSECTIONS = auto()  # Geometrisch entartet / keine Schnittpunkte
    ERROR = auto()


@dataclass
class OperationResult:
    """
    Ergebnis von Fillet, Trim oder Intersection.

    ``created`` / ``removed`` listen die Ids der erzeugten bzw. entfernten
    Entities (z.B. Tangentenpunkte und Bogen beim Fillet, Teil-Linien beim
    Split, ``p_int``-Punkte beim Schnitt). ``data`` trägt das
    operationsspezifische Objekt (FilletGeometry, gekürzte Linie, Bogen).

    NO_TARGET und NO_INTERSECTIONS garantieren einen unveränderten Sketch;
    bei ERROR spielt die SketchSession den Snapshot zurück.
    """
    status: ResultStatus
    message: str = ""
    data: Any = None
    created: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.WARNING)

    @property
    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    @classmethod
    def ok(cls, message: str = "", data: Any = None,
           created: Optional[List[str]] = None,
           removed: Optional[List[str]] = None) -> 'OperationResult':
        return cls(ResultStatus.SUCCESS, message, data, created or [], removed or [])

    @classmethod
    def warning(cls, message: str, data: Any = None,
                created: Optional[List[str]] = None,
                removed: Optional[List[str]] = None) -> 'OperationResult':
        return cls(ResultStatus.WARNING, message, data, created or [], removed or [])

    @classmethod
    def no_target(cls, message: str = "Kein Ziel gefunden") -> 'OperationResult':
        return cls(ResultStatus.NO_TARGET, message)

    @classmethod
    def no_intersections(cls, message: str = "Keine Schnittpunkte") -> 'OperationResult':
        return cls(ResultStatus.NO_INTERSECTIONS, message)

    @classmethod
    def error(cls, message: str) -> 'OperationResult':
        return cls(ResultStatus.ERROR, message)


class SketchOperation(ABC):
    """
    Basis für Operationen, die Geometrie und Constraints eines Sketches
    direkt umbauen.

    execute() wirft nie bei Benutzereingaben: unpassende Ids ergeben
    NO_TARGET, unerwartete Fehler werden an dieser Grenze geloggt und als
    ERROR gemeldet. Das Ergebnis bleibt über last_result abrufbar.
    """

    def __init__(self, sketch: 'Sketch'):
        self.sketch = sketch
        self._last_result: Optional[OperationResult] = None

    @property
    def last_result(self) -> Optional[OperationResult]:
        """Letztes Ergebnis der Operation."""
        return self._last_result

    def _finish(self, result: OperationResult) -> OperationResult:
        self._last_result = result
        return result

    @abstractmethod
    def execute(self, *args, **kwargs) -> OperationResult:
        """
        Führt die Operation aus.

        Returns:
            OperationResult mit Status und Details
        """
        pass

    def can_execute(self, *args, **kwargs) -> bool:
        """Vorab-Prüfung ohne Mutation (z.B. ob Trim eine Ziel-Linie findet)"""
        return True
