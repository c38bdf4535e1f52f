"""
Módulo cliente para integración con el web service SOAP de TIPSA
"""
from .config import TipsaConfig, get_tipsa_config, get_base_url, URL_TEST, URL_PRODUCCION
from .soap_client import TipsaSoapClient, build_request, wrap_envelope
from .models import ShipmentStatus
from .parsers import get_code, parse_embedded_xml, parse_envios, STATUS_CODES
from .xml_utils import ParsedResponse
from .exceptions import (
    TipsaException,
    TipsaTransportError,
    TipsaAuthenticationError,
    TipsaVendorFaultError,
    TipsaResponseParseError,
    TipsaUnrecognizedResponseError,
)

__all__ = [
    'TipsaConfig',
    'get_tipsa_config',
    'get_base_url',
    'URL_TEST',
    'URL_PRODUCCION',
    'TipsaSoapClient',
    'build_request',
    'wrap_envelope',
    'ShipmentStatus',
    'get_code',
    'parse_embedded_xml',
    'parse_envios',
    'STATUS_CODES',
    'ParsedResponse',
    'TipsaException',
    'TipsaTransportError',
    'TipsaAuthenticationError',
    'TipsaVendorFaultError',
    'TipsaResponseParseError',
    'TipsaUnrecognizedResponseError',
]
