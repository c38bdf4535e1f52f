"""
Configuración para cliente TIPSA
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


URL_PRODUCCION = "http://webservices.tipsa-dinapaq.com:8099/SOAP?service="
URL_TEST = "https://wsval.tipsa-dinapaq.com/SOAP?service="


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class TipsaConfig:
    """Configuración del cliente TIPSA por ambiente"""

    agencia: str
    cliente: str
    password: str = field(repr=False)
    language: str = "ES"
    base_url: str = URL_TEST

    # Transporte
    connect_timeout: float = 15.0
    read_timeout: float = 45.0
    max_retries: int = 2
    backoff_base: float = 0.6
    backoff_max: float = 8.0
    encoding: str = "utf-8"
    # El certificado del proveedor no valida contra las CA habituales
    verify_ssl: bool = False

    ENV_TEST = "test"
    ENV_PROD = "prod"

    BASE_URLS = {
        "test": URL_TEST,
        "prod": URL_PRODUCCION,
    }

    def service_url(self, service: str) -> str:
        """URL completa del servicio SOAP (base + nombre de servicio)"""
        return f"{self.base_url}{service}"


def get_base_url(env: str) -> str:
    """
    Devuelve la URL base según el ambiente

    Args:
        env: Ambiente ('test' o 'prod')

    Returns:
        URL base terminada en '?service='
    """
    if env not in TipsaConfig.BASE_URLS:
        raise ValueError(f"Ambiente inválido: {env}. Debe ser 'test' o 'prod'")
    return TipsaConfig.BASE_URLS[env]


def get_tipsa_config(env: Optional[str] = None) -> TipsaConfig:
    """
    Obtiene la configuración TIPSA desde variables de entorno

    Args:
        env: Ambiente ('test' o 'prod'). Si None, usa TIPSA_ENV

    Returns:
        Configuración TIPSA

    Raises:
        RuntimeError: Si faltan credenciales en el entorno
        ValueError: Si el ambiente es inválido
    """
    if env is None:
        env = os.getenv("TIPSA_ENV", TipsaConfig.ENV_TEST)
    default_url = get_base_url(env.strip().lower())
    base_url = os.getenv("TIPSA_BASE_URL") or default_url

    agencia = os.getenv("TIPSA_AGENCIA")
    cliente = os.getenv("TIPSA_CLIENTE")
    password = os.getenv("TIPSA_PASSWORD")
    missing = [
        name
        for name, value in (
            ("TIPSA_AGENCIA", agencia),
            ("TIPSA_CLIENTE", cliente),
            ("TIPSA_PASSWORD", password),
        )
        if not value
    ]
    if missing:
        raise RuntimeError(f"Faltan variables de entorno: {', '.join(missing)}")

    return TipsaConfig(
        agencia=agencia,
        cliente=cliente,
        password=password,
        language=os.getenv("TIPSA_IDIOMA", "ES"),
        base_url=base_url,
        connect_timeout=float(os.getenv("TIPSA_TIMEOUT_CONNECT", "15")),
        read_timeout=float(os.getenv("TIPSA_TIMEOUT_READ", "45")),
        max_retries=int(os.getenv("TIPSA_MAX_RETRIES", "2")),
        backoff_base=float(os.getenv("TIPSA_BACKOFF_BASE", "0.6")),
        backoff_max=float(os.getenv("TIPSA_BACKOFF_MAX", "8.0")),
        encoding=os.getenv("TIPSA_ENCODING", "utf-8"),
        verify_ssl=_env_bool("TIPSA_VERIFY_SSL", "false"),
    )
