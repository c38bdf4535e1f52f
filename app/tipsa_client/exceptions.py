"""
Excepciones personalizadas para el cliente TIPSA
"""
from typing import Optional


class TipsaException(Exception):
    """Excepción base para errores TIPSA"""
    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class TipsaTransportError(TipsaException):
    """Falla del intercambio HTTP (conexión, DNS, TLS, timeout). Único error reintentable."""
    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message, "transport")


class TipsaAuthenticationError(TipsaException):
    """El login respondió pero sin token de sesión (strSesion)"""
    def __init__(self, vendor_message: str):
        self.vendor_message = vendor_message
        super().__init__(f"Login error: {vendor_message}", "auth")


class TipsaVendorFaultError(TipsaException):
    """Respuesta con SOAP Fault"""
    def __init__(self, faultstring: str):
        self.faultstring = faultstring
        super().__init__(f"TIPSA API Error: {faultstring}", "fault")


class TipsaResponseParseError(TipsaException):
    """Se encontró el wrapper de respuesta pero el fragmento no es XML válido"""
    def __init__(self, message: str):
        super().__init__(message, "parse")


class TipsaUnrecognizedResponseError(TipsaException):
    """No se encontró el elemento de respuesta esperado"""
    def __init__(self, service: str, method: str, http_status: Optional[int] = None):
        self.service = service
        self.method = method
        self.http_status = http_status
        message = f"Respuesta no reconocida para {service}___{method}"
        if http_status is not None:
            message += f" (HTTP {http_status})"
        super().__init__(message, "unrecognized")
