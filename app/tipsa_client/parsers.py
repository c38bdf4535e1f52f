"""
Post-procesado de respuestas TIPSA: XML embebido, listas de estados y códigos de estado.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from lxml import etree

from .models import ShipmentStatus
from .xml_utils import ATTRIBUTES_KEY, xml_to_tree

logger = logging.getLogger(__name__)

INDETERMINADO = "Indeterminado"

STATUS_CODES = {
    "1": "Tránsito",
    "2": "Reparto",
    "3": "Entregado",
    "4": "Incidencia",
    "5": "Devuelto",
    "6": "Falta de expedición",
    "7": "Recanalizado",
    "9": "Falta de expedición administrativa",
    "10": "Destruído",
    "14": "Disponible",
    "15": "Entrega parcial",
}


def get_code(code: Union[str, int, None]) -> str:
    """Traduce el código de estado TIPSA a una descripción legible."""
    if code is None:
        return INDETERMINADO
    return STATUS_CODES.get(str(code).strip(), INDETERMINADO)


def parse_embedded_xml(xml_string: Optional[str], node: str) -> Any:
    """
    Parsea un XML serializado como texto dentro de un campo de la respuesta.

    Args:
        xml_string: Contenido del campo (p.ej. strInfEnvios)
        node: Nombre del nodo hijo de la raíz a devolver (p.ej. INF_ENVIOS)

    Returns:
        El valor del nodo (dict, lista o str), o {} si el campo está vacío,
        el nodo no existe, el nodo está vacío o el XML no se puede parsear
    """
    if not xml_string or not isinstance(xml_string, str) or not xml_string.strip():
        return {}

    try:
        tree = xml_to_tree(xml_string)
    except etree.XMLSyntaxError as e:
        logger.warning(f"XML embebido inválido (nodo {node}): {e}")
        return {}

    value = tree.get(node, {})
    return {} if value == "" else value


def _attributes(entry: Any) -> Mapping[str, Any]:
    if isinstance(entry, Mapping):
        attrs = entry.get(ATTRIBUTES_KEY)
        if isinstance(attrs, Mapping):
            return attrs
    return {}


def _text(attrs: Mapping[str, Any], key: str) -> str:
    value = attrs.get(key)
    return value if isinstance(value, str) else ""


def _status_from_attributes(attrs: Mapping[str, Any]) -> ShipmentStatus:
    code_type = _text(attrs, "V_COD_TIPO_EST")
    return ShipmentStatus(
        service=_text(attrs, "V_SERVICIO"),
        last=_text(attrs, "B_ULT") not in ("", "0"),
        date=_text(attrs, "D_FEC_HORA_ALTA"),
        code_type=code_type,
        code=get_code(code_type),
    )


def _entries(results: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(results, Mapping):
        if ATTRIBUTES_KEY in results:
            return [_attributes(results)]
        return [_attributes(value) for value in results.values()]
    if isinstance(results, list):
        return [_attributes(value) for value in results]
    return []


def parse_envios(results: Any) -> List[ShipmentStatus]:
    """
    Normaliza una lista de estados (entrada única o varias) a ShipmentStatus.

    Orden ascendente por fecha; entradas con la misma fecha mantienen el orden de entrada.
    """
    statuses = [_status_from_attributes(attrs) for attrs in _entries(results)]
    return sorted(statuses, key=lambda status: status.date)


def current_status_attributes(data: Any) -> Dict[str, Any]:
    """Atributos del estado vigente: el marcado con B_ULT, o el más reciente por fecha."""
    if isinstance(data, Mapping) and ATTRIBUTES_KEY in data:
        return dict(_attributes(data))
    entries = [attrs for attrs in _entries(data) if attrs]
    if not entries:
        return {}
    flagged = [attrs for attrs in entries if _text(attrs, "B_ULT") not in ("", "0")]
    if flagged:
        return dict(flagged[-1])
    return dict(max(entries, key=lambda attrs: _text(attrs, "D_FEC_HORA_ALTA")))
