"""
Cliente SOAP 1.1 para el web service de TIPSA

Notas importantes:
- Autenticación por sesión: LoginWSService/LoginCli2 devuelve strSesion, que viaja
  en la cabecera ROClientIDHeader de cada llamada a WebServService.
- Las respuestas de consulta traen un segundo XML serializado como texto dentro
  de un campo (strInfEnvios, strEnvEstados, ...).
- El certificado del entorno de validación no verifica; por defecto verify=False.
"""
import base64
import binascii
import html
import logging
import random
import time
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import requests
import urllib3
from lxml import etree
from requests import Session
from requests.adapters import HTTPAdapter

from .config import TipsaConfig
from .exceptions import (
    TipsaAuthenticationError,
    TipsaResponseParseError,
    TipsaTransportError,
    TipsaUnrecognizedResponseError,
    TipsaVendorFaultError,
)
from .models import ShipmentStatus
from .operations import (
    BUSINESS_SERVICE,
    LOGIN_METHOD,
    LOGIN_SERVICE,
    OPERATIONS,
)
from .parsers import current_status_attributes, parse_embedded_xml, parse_envios
from .xml_utils import (
    ParsedResponse,
    extract_faultstring,
    extract_response_fragment,
    has_fault,
    namespace_declarations,
    scrape_v1_fields,
    strip_v1_prefix,
    xml_to_tree,
)

logger = logging.getLogger(__name__)

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
TEM_NS = "http://tempuri.org/"


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_request(service: str, method: str, params: Mapping[str, Any]) -> str:
    """Cuerpo ``<tem:{service}___{method}>`` con un hijo escapado por parámetro, en orden."""
    operation = f"{service}___{method}"
    parts = [f"<tem:{operation}>"]
    for key, value in params.items():
        escaped = html.escape(_format_value(value), quote=True)
        parts.append(f"<tem:{key}>{escaped}</tem:{key}>")
    parts.append(f"</tem:{operation}>")
    return "".join(parts)


def wrap_envelope(body: str, session_id: Optional[str] = None, encoding: str = "UTF-8") -> str:
    """Envelope SOAP; la cabecera ROClientIDHeader solo se emite si hay session_id."""
    header = ""
    if session_id:
        header = (
            "<soapenv:Header>"
            "<tem:ROClientIDHeader>"
            f"<tem:ID>{html.escape(session_id, quote=True)}</tem:ID>"
            "</tem:ROClientIDHeader>"
            "</soapenv:Header>"
        )
    return (
        f'<?xml version="1.0" encoding="{encoding.upper()}"?>\n'
        f'<soapenv:Envelope xmlns:soapenv="{SOAPENV_NS}" xmlns:tem="{TEM_NS}">'
        f"{header}"
        f"<soapenv:Body>{body}</soapenv:Body>"
        "</soapenv:Envelope>"
    )


def _format_fecha(fecha: Union[str, date, datetime]) -> str:
    if isinstance(fecha, (date, datetime)):
        return fecha.strftime("%Y/%m/%d")
    return fecha


def _mask_token(token: str) -> str:
    # Nunca más de la mitad del token, y como máximo 4 caracteres.
    return token[: min(4, len(token) // 2)] + "***"


class TipsaSoapClient:
    """Cliente SOAP para TIPSA con sesión perezosa (una sesión por instancia)."""

    def __init__(self, config: TipsaConfig, session: Optional[Session] = None):
        self.config = config
        self._session_id: Optional[str] = None
        self._last_http_status: Optional[int] = None
        self.session = session if session is not None else self._create_session()

    def _create_session(self) -> Session:
        session = Session()
        session.verify = self.config.verify_ssl
        if not self.config.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        session.mount("https://", HTTPAdapter())
        session.mount("http://", HTTPAdapter())
        return session

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "TipsaSoapClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------------------------------------------------------------
    # Sesión
    # ---------------------------------------------------------------------
    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_authenticated(self) -> bool:
        return self._session_id is not None

    def login(self) -> None:
        """Obtiene strSesion del servicio de login. Lanza TipsaAuthenticationError si falta."""
        body = build_request(
            LOGIN_SERVICE,
            LOGIN_METHOD,
            {
                "strCodAge": self.config.agencia,
                "strCod": self.config.cliente,
                "strPass": self.config.password,
                "strIdioma": self.config.language,
            },
        )
        xml = self._wrap_envelope(body, with_header=False)
        logger.info(f"Login TIPSA: agencia={self.config.agencia}, cliente={self.config.cliente}")
        response = self.request(self.config.service_url(LOGIN_SERVICE), xml)

        parsed = scrape_v1_fields(response)
        session_id = parsed.get("strSesion", "").strip()
        if not session_id:
            message = parsed.get("strError")
            if not message and has_fault(response):
                message = extract_faultstring(response)
            message = message or "Unknown"
            logger.error(f"Login TIPSA rechazado: {message}")
            raise TipsaAuthenticationError(message)

        self._session_id = session_id
        logger.info(f"Sesión TIPSA obtenida: {_mask_token(session_id)}")

    def _wrap_envelope(self, body: str, with_header: bool) -> str:
        session_id = self._session_id if with_header else None
        return wrap_envelope(body, session_id, encoding=self.config.encoding)

    # ---------------------------------------------------------------------
    # Transporte
    # ---------------------------------------------------------------------
    def request(self, url: str, xml: str, retry: bool = True) -> str:
        """POST del envelope; devuelve el cuerpo como texto. Solo reintenta errores de conexión/timeout."""
        body = xml.encode(self.config.encoding, errors="xmlcharrefreplace")
        headers = {"Content-Type": f"text/xml; charset={self.config.encoding}"}
        max_attempts = (self.config.max_retries if retry else 0) + 1

        resp = None
        last_exception: Optional[Exception] = None
        for attempt in range(1, max_attempts + 1):
            try:
                logger.debug(f"Intento {attempt}/{max_attempts} para POST a {url}")
                resp = self.session.post(
                    url,
                    data=body,
                    headers=headers,
                    timeout=(self.config.connect_timeout, self.config.read_timeout),
                )
                break
            except requests.exceptions.SSLError as e:
                raise TipsaTransportError(f"Error TLS al contactar TIPSA: {e}", url) from e
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                last_exception = e
                if attempt < max_attempts:
                    delay = min(self.config.backoff_base * (2 ** (attempt - 1)), self.config.backoff_max)
                    jitter = delay * 0.25 * (random.random() * 2 - 1)
                    final_delay = max(delay + jitter, 0.0)
                    logger.warning(
                        f"Error de conexión (intento {attempt}/{max_attempts}): {e}. "
                        f"Reintentando en {final_delay:.2f}s..."
                    )
                    time.sleep(final_delay)
                else:
                    logger.error(f"Todos los intentos fallaron. Último error: {e}")
            except requests.exceptions.RequestException as e:
                raise TipsaTransportError(f"Error HTTP al contactar TIPSA: {e}", url) from e

        if resp is None:
            raise TipsaTransportError(
                f"Error de conexión después de {max_attempts} intentos: {last_exception}", url
            ) from last_exception

        if resp.status_code != 200:
            # Los SOAP Fault llegan como HTTP 500; se analizan después
            logger.warning(f"TIPSA respondió HTTP {resp.status_code} en {url}")
        self._last_http_status = resp.status_code

        return self._decode_response(resp)

    def _decode_response(self, resp: Any) -> str:
        content_type = (resp.headers.get("Content-Type") or "").lower()
        encoding = self.config.encoding
        if "charset=" in content_type and resp.encoding:
            encoding = resp.encoding
        try:
            return resp.content.decode(encoding, errors="replace")
        except LookupError:
            return resp.content.decode(self.config.encoding, errors="replace")

    # ---------------------------------------------------------------------
    # Llamada genérica
    # ---------------------------------------------------------------------
    def call(
        self,
        service: str,
        method: str,
        parameters: Mapping[str, Any],
        response_key: Optional[str] = None,
        retry: bool = True,
    ) -> ParsedResponse:
        """
        Ejecuta una llamada SOAP y devuelve la respuesta como árbol genérico.

        Args:
            service: Servicio SOAP (LoginWSService, WebServService)
            method: Método del servicio
            parameters: Parámetros en el orden de envío
            response_key: Campo esperado en la respuesta; si falta se registra un aviso
            retry: Permite reintentos ante errores de transporte

        Raises:
            TipsaTransportError, TipsaAuthenticationError, TipsaVendorFaultError,
            TipsaResponseParseError, TipsaUnrecognizedResponseError
        """
        is_business = service == BUSINESS_SERVICE
        if is_business and not self.is_authenticated:
            self.login()

        request_xml = build_request(service, method, parameters)
        soap_xml = self._wrap_envelope(request_xml, with_header=is_business)
        logger.info(f"Llamada TIPSA {service}___{method}")
        logger.debug(f"SOAP request {service}___{method}: {request_xml}")

        self._last_http_status = None
        response = self.request(self.config.service_url(service), soap_xml, retry=retry)

        if has_fault(response):
            faultstring = extract_faultstring(response) or "SOAP Fault"
            logger.error(f"SOAP Fault en {service}___{method}: {faultstring}")
            raise TipsaVendorFaultError(faultstring)

        fragment = extract_response_fragment(response, service, method)
        if fragment is None:
            raise TipsaUnrecognizedResponseError(service, method, self._last_http_status)

        wrapped = (
            '<?xml version="1.0" encoding="utf-8"?>'
            f"<root{namespace_declarations(response)}>{strip_v1_prefix(fragment)}</root>"
        )
        try:
            tree = xml_to_tree(wrapped)
        except etree.XMLSyntaxError as e:
            raise TipsaResponseParseError(f"Error al parsear XML limpio de TIPSA: {e}") from e

        if response_key and response_key not in tree:
            logger.warning(f"Respuesta {service}___{method} sin campo {response_key}")
        return tree

    def _run(self, name: str, **arguments: Any) -> ParsedResponse:
        operation = OPERATIONS[name]
        params = operation.build_params(self.config.agencia, arguments)
        return self.call(
            operation.service,
            operation.method,
            params,
            operation.result_field,
            retry=operation.idempotent,
        )

    def _run_embedded(self, name: str, **arguments: Any) -> Any:
        operation = OPERATIONS[name]
        result = self._run(name, **arguments)
        return parse_embedded_xml(result.get_text(operation.result_field), operation.node)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def get_envios_by_date(self, fecha: Union[str, date, datetime]) -> Any:
        """Envíos registrados en una fecha ('YYYY/MM/DD'). Devuelve el nodo INF_ENVIOS."""
        return self._run_embedded("envios_por_fecha", fecha=_format_fecha(fecha))

    def get_estados_by_reference(self, ref: str) -> List[ShipmentStatus]:
        """Estados de un envío por su referencia, en orden cronológico."""
        data = self._run_embedded("estados_por_referencia", ref=ref)
        if not data:
            return []
        return parse_envios(data)

    def get_last_estado_by_albaran(self, albaran: str) -> List[ShipmentStatus]:
        data = self._run_embedded("ultimo_estado_por_albaran", albaran=albaran)
        if not data:
            return []
        return parse_envios(data)

    def get_albaran(self, albaran: str) -> Optional[bytes]:
        """Albarán de entrega en PDF (decodificado de base64), o None si no existe."""
        result = self._run("albaran", albaran=albaran)
        encoded = result.get_text(OPERATIONS["albaran"].result_field)
        if not encoded:
            return None
        try:
            return base64.b64decode(encoded)
        except (binascii.Error, ValueError) as e:
            raise TipsaResponseParseError(f"strAlbEnt no es base64 válido: {e}") from e

    def get_incidencias_by_date(self, fecha: Union[str, date, datetime]) -> Any:
        return self._run_embedded("incidencias_por_fecha", fecha=_format_fecha(fecha))

    def create_envio(self, data: Mapping[str, Any]) -> ParsedResponse:
        """Graba un envío nuevo (GrabaEnvio24). boInsert=True salvo que data lo indique."""
        operation = OPERATIONS["grabar_envio"]
        params: Dict[str, Any] = {"boInsert": True, **data}
        return self.call(operation.service, operation.method, params, retry=operation.idempotent)

    def requery_etiqueta(
        self,
        albaran: str,
        formato: str = "txt",
        rep_det_id: int = 0,
        desde: int = 1,
        hasta: int = 1,
        pos_ini: int = 1,
    ) -> Optional[str]:
        """
        Reconsulta la etiqueta de un envío.

        Args:
            albaran: Número de albarán
            formato: 'pdf', 'zpl' o 'txt'
            rep_det_id: ID del informe (0 = predeterminado)
            desde: Bulto desde
            hasta: Bulto hasta
            pos_ini: Posición inicial de la etiqueta

        Returns:
            Contenido base64 de la etiqueta, o None
        """
        result = self._run(
            "etiqueta",
            albaran=albaran,
            formato=formato,
            rep_det_id=rep_det_id,
            desde=desde,
            hasta=hasta,
            pos_ini=pos_ini,
        )
        return result.get_text(OPERATIONS["etiqueta"].result_field) or None

    def get_envio(self, albaran: str) -> Dict[str, Any]:
        """Datos generales del envío (atributos de ENVIOS)."""
        data = self._run_embedded("envio", albaran=albaran)
        if not isinstance(data, dict):
            return {}
        return dict(data.get("@attributes", {}))

    def get_estado_envio(self, albaran: str) -> Dict[str, Any]:
        """Atributos del estado vigente del envío (ENV_ESTADOS)."""
        data = self._run_embedded("estado_envio", albaran=albaran)
        if not data:
            return {}
        return current_status_attributes(data)
