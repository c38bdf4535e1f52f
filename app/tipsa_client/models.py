"""
Modelos de datos para TIPSA
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class ShipmentStatus:
    """Estado de un envío (entrada de ENV_ESTADOS / ENV_ESTADOS_REF)"""
    service: str
    last: bool
    date: str  # "YYYY-MM-DD HH:MM", ordenable lexicográficamente
    code_type: str
    code: str  # descripción legible de code_type

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
