#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

# Asegurar import "app.*" aunque ejecutes desde tools/
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.tipsa_client.config import get_tipsa_config
from app.tipsa_client.exceptions import TipsaException, TipsaTransportError
from app.tipsa_client.models import ShipmentStatus
from app.tipsa_client.soap_client import TipsaSoapClient


def _today() -> str:
    return datetime.now().strftime("%Y/%m/%d")


def _jsonable(value: Any) -> Any:
    if isinstance(value, ShipmentStatus):
        return value.to_dict()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Consultas al web service de TIPSA")
    ap.add_argument("--env", choices=["test", "prod"], default=None)
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("envios", help="Envíos de una fecha (InfEnvios)")
    p.add_argument("--fecha", default=None, help="YYYY/MM/DD (default hoy)")

    p = sub.add_parser("incidencias", help="Incidencias de una fecha")
    p.add_argument("--fecha", default=None, help="YYYY/MM/DD (default hoy)")

    p = sub.add_parser("estados", help="Estados por referencia")
    p.add_argument("--ref", required=True)

    for name, help_text in (("envio", "Datos del envío"), ("estado", "Estado vigente del envío")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--albaran", required=True)

    p = sub.add_parser("albaran", help="Descarga el albarán en PDF")
    p.add_argument("--albaran", required=True)
    p.add_argument("--out", required=True, help="Ruta del PDF de salida")
    return ap


def run(args: argparse.Namespace, client: TipsaSoapClient) -> Any:
    if args.command == "envios":
        return client.get_envios_by_date(args.fecha or _today())
    if args.command == "incidencias":
        return client.get_incidencias_by_date(args.fecha or _today())
    if args.command == "estados":
        return client.get_estados_by_reference(args.ref)
    if args.command == "envio":
        return client.get_envio(args.albaran)
    if args.command == "estado":
        return client.get_estado_envio(args.albaran)
    if args.command == "albaran":
        pdf = client.get_albaran(args.albaran)
        if pdf is None:
            return {"ok": False, "error": "Etiqueta no encontrada"}
        out = Path(args.out).expanduser()
        out.write_bytes(pdf)
        return {"ok": True, "path": str(out), "size": len(pdf)}
    raise ValueError(f"Comando desconocido: {args.command}")


def main(argv: Optional[List[str]] = None, client: Optional[TipsaSoapClient] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if client is None:
        client = TipsaSoapClient(get_tipsa_config(args.env))

    try:
        with client:
            result = run(args, client)
    except TipsaTransportError as e:
        print(f"ERROR transporte: {e}", file=sys.stderr)
        return 2
    except TipsaException as e:
        print(f"ERROR TIPSA: {e}", file=sys.stderr)
        return 1

    print(json.dumps(_jsonable(result), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
