"""
CLI: ERP -> OdontoPrev (sincronizacion de empresas y beneficiarios).

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) o en modo --loop como servicio.
  - La API solo dispara corridas puntuales; el trabajo periodico vive aqui.

Variables de entorno relevantes (ver odontoprev_sync/core/config.py):
  - DATABASE_URL (o DATABASE_HOST/PORT/USER/PASSWORD/NAME)
  - ERP_SCHEMA
  - ODONTOPREV_BASE_URL, ODONTOPREV_AUTH_URL, ODONTOPREV_APP_TOKEN
  - ODONTOPREV_LOGIN_USER, ODONTOPREV_LOGIN_PASSWORD, ODONTOPREV_LOGIN_APP_ID

Ejecucion:
  python scripts/run_sync.py --entity all
  python scripts/run_sync.py --entity company --phase EXCLUSION
  python scripts/run_sync.py --loop
  python scripts/run_sync.py --init-db
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

# Cargar variables desde .env antes de construir Settings.
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from odontoprev_sync.core.config import settings  # noqa: E402
from odontoprev_sync.core.events import configure_logging  # noqa: E402
from odontoprev_sync.infrastructure.container import build_from_settings  # noqa: E402
from odontoprev_sync.infrastructure.database.session import close_db, init_db  # noqa: E402
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind  # noqa: E402
from odontoprev_sync.shared.exceptions.sync import SyncError  # noqa: E402


ENTITY_CHOICES = ("company", "beneficiary", "all")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincronizacion ERP -> OdontoPrev")
    parser.add_argument(
        "--entity",
        choices=ENTITY_CHOICES,
        default="all",
        help="Entidad a sincronizar (default: all).",
    )
    parser.add_argument(
        "--phase",
        choices=[c.value for c in ControlType],
        default=None,
        help="Ejecuta solo esta fase (requiere --entity company|beneficiary).",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Modo scheduler: repite cada SCHEDULER_INTERVAL_SECONDS sin solapar corridas.",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Crea las tablas de control si no existen y termina.",
    )
    return parser


def _selected_entities(entity: str) -> List[EntityKind]:
    if entity == "all":
        return [EntityKind.COMPANY, EntityKind.BENEFICIARY]
    return [EntityKind(entity)]


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.phase and args.entity == "all":
        parser.error("--phase requiere --entity company o beneficiary")
    if args.phase and args.loop:
        parser.error("--phase no se puede combinar con --loop")

    configure_logging()

    if args.init_db:
        logger.info("Creando tablas de control...")
        init_db()
        logger.success("Tablas de control listas")
        return 0

    try:
        container = build_from_settings(settings)
    except SyncError as exc:
        logger.error(f"Configuracion invalida: {exc.message}")
        return 2

    try:
        if args.loop:
            try:
                container.scheduler.run_forever()
            except KeyboardInterrupt:
                logger.info("Interrumpido por el usuario")
            return 0

        phase = ControlType(args.phase) if args.phase else None
        exit_code = 0
        for entity_kind in _selected_entities(args.entity):
            report = container.scheduler.trigger(entity_kind, phase)
            if report is None:
                continue
            logger.info(f"Sync {report.summary()}")
            if report.errors:
                exit_code = 1
        return exit_code
    finally:
        container.close()
        close_db()


if __name__ == "__main__":
    raise SystemExit(main())
