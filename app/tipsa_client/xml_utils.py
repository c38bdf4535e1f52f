"""
Utilidades XML para las respuestas TIPSA

Las respuestas del proveedor no siempre son XML bien formado en su totalidad,
por eso la localización de faults, del wrapper de respuesta y de los campos de
login se hace sobre el texto crudo con expresiones regulares acotadas. Solo el
fragmento ya extraído se parsea con lxml.

Casos contemplados por el escáner:
- contenido multilínea dentro del wrapper (DOTALL)
- elementos con nombre que empieza igual (``...Response`` vs ``...ResponseX``):
  el nombre del tag debe terminar en ``>``, espacio o ``/``
- wrappers anidados con el mismo nombre: se toma desde la primera apertura
  hasta el primer cierre (no se soporta anidamiento real)
"""
import html
import re
from typing import Any, Dict, List, Optional, Union

from lxml import etree

FAULT_MARKERS = ("<SOAP-ENV:Fault>", "<soap:Fault>")

_FAULTSTRING_RE = re.compile(r"<faultstring(?:\s[^>]*)?>(.*?)</faultstring>", re.DOTALL)
_LOGIN_FIELD_RE = re.compile(r"<v1:(\w+)>([^<]+)<", re.MULTILINE | re.DOTALL)
_V1_PREFIX_RE = re.compile(r"(</?)v1:")
_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>\s*", re.I)
_XMLNS_DECL_RE = re.compile(r"""\sxmlns:([A-Za-z_][\w.-]*)\s*=\s*("[^"]*"|'[^']*')""")
_RESERVED_PREFIXES = ("xml", "xmlns")

ATTRIBUTES_KEY = "@attributes"
VALUE_KEY = "@value"

Tree = Union[str, Dict[str, Any], List[Any]]


class ParsedResponse(dict):
    """Árbol genérico (dict/list/str) obtenido de un XML del proveedor.

    Acceso seguro por ruta para no propagar ``None`` en silencio.
    """

    def get_path(self, *keys: Union[str, int], default: Any = None) -> Any:
        node: Any = self
        for key in keys:
            if isinstance(node, dict) and isinstance(key, str):
                if key not in node:
                    return default
                node = node[key]
            elif isinstance(node, list) and isinstance(key, int):
                if not -len(node) <= key < len(node):
                    return default
                node = node[key]
            else:
                return default
        return node

    def get_text(self, *keys: Union[str, int], default: str = "") -> str:
        value = self.get_path(*keys, default=default)
        return value if isinstance(value, str) else default

    def get_list(self, *keys: Union[str, int]) -> List[Any]:
        """Normaliza un nodo que puede venir como elemento único o como lista."""
        value = self.get_path(*keys)
        if value is None or value == "":
            return []
        if isinstance(value, list):
            return value
        return [value]


# ---------------------------------------------------------------------
# Escáner sobre texto crudo
# ---------------------------------------------------------------------
def has_fault(raw: str) -> bool:
    return any(marker in raw for marker in FAULT_MARKERS)


def extract_faultstring(raw: str) -> Optional[str]:
    """Devuelve el faultstring (con entidades decodificadas) o None."""
    match = _FAULTSTRING_RE.search(raw)
    if not match:
        return None
    return html.unescape(match.group(1))


def extract_response_fragment(raw: str, service: str, method: str) -> Optional[str]:
    """Contenido interno de ``v1:{service}___{method}Response`` o None si no aparece."""
    tag = re.escape(f"v1:{service}___{method}Response")
    pattern = re.compile(rf"<{tag}(?:\s[^>]*)?>(.*?)</{tag}\s*>", re.DOTALL)
    match = pattern.search(raw)
    if not match:
        return None
    return match.group(1)


def strip_v1_prefix(fragment: str) -> str:
    return _V1_PREFIX_RE.sub(r"\1", fragment)


def scrape_v1_fields(raw: str) -> Dict[str, str]:
    """Pares ``<v1:NOMBRE>valor<`` del texto crudo; ante repetidos gana el último."""
    return {name: html.unescape(value) for name, value in _LOGIN_FIELD_RE.findall(raw)}


def strip_xml_declaration(xml_text: str) -> str:
    return _XML_DECL_RE.sub("", xml_text, count=1)


def namespace_declarations(raw: str) -> str:
    """Declaraciones ``xmlns:prefijo`` del texto crudo, listas para un elemento envoltorio.

    El fragmento de respuesta se extrae fuera de su sobre; sin estas
    declaraciones un atributo como ``xsi:type`` queda con prefijo sin ligar.
    Ante prefijos repetidos gana la primera declaración.
    """
    seen: Dict[str, str] = {}
    for prefix, quoted in _XMLNS_DECL_RE.findall(raw):
        if prefix in _RESERVED_PREFIXES or prefix in seen:
            continue
        seen[prefix] = quoted
    return "".join(f" xmlns:{prefix}={quoted}" for prefix, quoted in seen.items())


# ---------------------------------------------------------------------
# XML -> árbol genérico
# ---------------------------------------------------------------------
def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        strip_cdata=True,
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )


def parse_xml(xml_text: Union[str, bytes]) -> etree._Element:
    """Parsea texto XML; lanza etree.XMLSyntaxError si no está bien formado."""
    if isinstance(xml_text, str):
        xml_text = strip_xml_declaration(xml_text).encode("utf-8")
    return etree.fromstring(xml_text, parser=_parser())


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def element_to_tree(elem: etree._Element) -> Tree:
    """Convierte un elemento en str (hoja), dict (hijos/atributos).

    Los atributos con espacio de nombres (``xsi:type``, ...) se ignoran.
    """
    children = [child for child in elem if isinstance(child.tag, str)]
    attrs = {k: v for k, v in elem.attrib.items() if not k.startswith("{")}
    text = (elem.text or "").strip()

    if not children and not attrs:
        return text

    node: Dict[str, Any] = {}
    if attrs:
        node[ATTRIBUTES_KEY] = attrs
    if not children:
        if text:
            node[VALUE_KEY] = text
        return node

    for child in children:
        name = _local_name(child.tag)
        value = element_to_tree(child)
        if name in node:
            if not isinstance(node[name], list):
                node[name] = [node[name]]
            node[name].append(value)
        else:
            node[name] = value
    return node


def xml_to_tree(xml_text: Union[str, bytes]) -> ParsedResponse:
    """Parsea un documento y devuelve los hijos de la raíz como ParsedResponse.

    El nombre del elemento raíz se descarta; sus atributos quedan en ``@attributes``.
    """
    root = parse_xml(xml_text)
    tree = element_to_tree(root)
    if isinstance(tree, dict):
        return ParsedResponse(tree)
    return ParsedResponse()
