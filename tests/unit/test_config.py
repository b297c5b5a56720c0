"""
Tests para la configuracion: orden de fases y URL efectiva.
"""
from __future__ import annotations

import pytest

from odontoprev_sync.core.config import Settings, parse_phase_order
from odontoprev_sync.shared.constants.sync_constants import ControlType, EntityKind
from odontoprev_sync.shared.exceptions.sync import SyncError, SyncErrorKind


class TestParsePhaseOrder:
    """Tests para parse_phase_order()."""

    def test_defaults_per_entity(self) -> None:
        assert parse_phase_order("", EntityKind.COMPANY) == (
            ControlType.EXCLUSION,
            ControlType.ALTERATION,
            ControlType.ADDITION,
        )
        assert parse_phase_order("", EntityKind.BENEFICIARY) == (
            ControlType.ADDITION,
            ControlType.ALTERATION,
            ControlType.EXCLUSION,
        )

    def test_custom_order_is_case_and_space_insensitive(self) -> None:
        assert parse_phase_order(" alteration , ADDITION", EntityKind.COMPANY) == (
            ControlType.ALTERATION,
            ControlType.ADDITION,
        )

    def test_unknown_phase(self) -> None:
        with pytest.raises(SyncError) as exc_info:
            parse_phase_order("ADDITION,UPSERT", EntityKind.COMPANY)

        assert exc_info.value.kind is SyncErrorKind.CONFIGURATION

    def test_repeated_phase(self) -> None:
        with pytest.raises(SyncError) as exc_info:
            parse_phase_order("ADDITION,ADDITION", EntityKind.BENEFICIARY)

        assert exc_info.value.kind is SyncErrorKind.CONFIGURATION
        assert exc_info.value.details["entity_kind"] == "beneficiary"


class TestSettings:
    """Tests de Settings."""

    def test_database_url_from_components(self) -> None:
        settings = Settings(
            DATABASE_URL="",
            DATABASE_USER="u",
            DATABASE_PASSWORD="p",
            DATABASE_HOST="db",
            DATABASE_PORT=5433,
            DATABASE_NAME="sync",
        )

        assert settings.effective_database_url == "postgresql+psycopg://u:p@db:5433/sync"

    def test_database_url_override(self) -> None:
        settings = Settings(DATABASE_URL="sqlite:///./local.db")

        assert settings.effective_database_url == "sqlite:///./local.db"

    def test_phase_orders(self) -> None:
        settings = Settings(COMPANY_PHASE_ORDER="ADDITION", BENEFICIARY_PHASE_ORDER="")

        orders = settings.phase_orders()

        assert orders[EntityKind.COMPANY] == (ControlType.ADDITION,)
        assert orders[EntityKind.BENEFICIARY][0] is ControlType.ADDITION
