"""
Tabla declarativa de operaciones del servicio WebServService

Cada operación fija el método SOAP, el mapeo campo TIPSA -> argumento, el campo
de la respuesta que trae el XML embebido y el nodo a extraer de ese XML.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

LOGIN_SERVICE = "LoginWSService"
LOGIN_METHOD = "LoginCli2"
BUSINESS_SERVICE = "WebServService"

# Argumento especial: se completa con el código de agencia de la configuración
AGENCIA = "@agencia"


@dataclass(frozen=True)
class Operation:
    method: str
    params: Tuple[Tuple[str, str], ...]
    result_field: Optional[str] = None
    node: Optional[str] = None
    service: str = BUSINESS_SERVICE
    idempotent: bool = True

    def build_params(self, agencia: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """Parámetros SOAP en el orden declarado."""
        params: Dict[str, Any] = {}
        for vendor_field, argument in self.params:
            if argument == AGENCIA:
                params[vendor_field] = agencia
            elif argument in arguments:
                params[vendor_field] = arguments[argument]
            else:
                raise ValueError(f"{self.method}: falta el argumento '{argument}'")
        return params


OPERATIONS: Dict[str, Operation] = {
    "envios_por_fecha": Operation(
        "InfEnvios",
        (("dtFecha", "fecha"),),
        "strInfEnvios",
        "INF_ENVIOS",
    ),
    "estados_por_referencia": Operation(
        "ConsEnvEstadosRef",
        (("strRef", "ref"),),
        "strEnvEstadosRef",
        "ENV_ESTADOS_REF",
    ),
    # Forma de la respuesta sin verificar contra documentación del proveedor
    "ultimo_estado_por_albaran": Operation(
        "ConsUltimoEstadoEnvio",
        (("strAlbaran", "albaran"),),
        "strUltimoEstadoEnvio",
        "CONS_ULTIMO_ESTADO_ENVIO",
    ),
    "albaran": Operation(
        "ConsAlbaranEnvio",
        (("strAlbaran", "albaran"),),
        "strAlbEnt",
    ),
    "incidencias_por_fecha": Operation(
        "ConsEnvIncidenciasFecha",
        (("dtFecha", "fecha"),),
        "strEnvIncidencias",
        "ENV_INCIDENCIAS",
    ),
    "etiqueta": Operation(
        "ConsEtiquetaEnvio8",
        (
            ("strCodAgeOri", AGENCIA),
            ("strAlbaran", "albaran"),
            ("strNumBultoDesde", "desde"),
            ("strNumBultoHasta", "hasta"),
            ("intPosIni", "pos_ini"),
            ("intIdRepDet", "rep_det_id"),
            ("strFormato", "formato"),
        ),
        "strEtiqueta",
    ),
    "envio": Operation(
        "ConsEnvio",
        (
            ("strCodAgeCargo", AGENCIA),
            ("strCodAgeOri", AGENCIA),
            ("strAlbaran", "albaran"),
        ),
        "strEnvio",
        "ENVIOS",
    ),
    "estado_envio": Operation(
        "ConsEnvEstados",
        (
            ("strCodAgeCargo", AGENCIA),
            ("strCodAgeOri", AGENCIA),
            ("strAlbaran", "albaran"),
        ),
        "strEnvEstados",
        "ENV_ESTADOS",
    ),
    # Alta de envío: parámetros libres, no se reintenta ante errores de transporte
    "grabar_envio": Operation(
        "GrabaEnvio24",
        (),
        idempotent=False,
    ),
}
