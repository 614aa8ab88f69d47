"""Spreadsheet export of CAPA records."""

from datetime import date
from io import BytesIO
from typing import Optional
from uuid import UUID

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.core.schemas_capa import CAPA_STATUS_LABELS, CAPA_TYPE_LABELS, CapaRecord

EXPORT_SHEET_NAME = "CAPA_Actions"
EXPORT_FILENAME = "capa_report.xlsx"

EXPORT_COLUMNS = [
    ("Folio", 12),
    ("Creation Date", 14),
    ("Commitment Date", 16),
    ("Close Date", 14),
    ("Source", 25),
    ("Description", 45),
    ("Plan", 55),
    ("Type", 12),
    ("Status", 14),
    ("Responsible", 25),
    ("Verification Notes", 45),
]

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
WRAP = Alignment(wrap_text=True, vertical="top")


def _fmt_date(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def capa_export_row(capa: CapaRecord, names: dict[UUID, str]) -> list[str]:
    """One row of the export, in EXPORT_COLUMNS order."""
    return [
        capa.folio,
        _fmt_date(capa.creation_date),
        _fmt_date(capa.commitment_date),
        _fmt_date(capa.close_date),
        capa.source,
        capa.description,
        capa.plan,
        CAPA_TYPE_LABELS[capa.type],
        CAPA_STATUS_LABELS[capa.status],
        names.get(capa.responsible_user_id) or "N/A",
        capa.verification_notes or "",
    ]


def build_capa_workbook(capas: list[CapaRecord], users: list[UserProfile]) -> bytes:
    """
    Build the CAPA report workbook.

    Args:
        capas: Records to export, one row each
        users: Directory used to resolve responsible names

    Returns:
        .xlsx file contents
    """
    names = {u.id: u.full_name for u in users if u.full_name}

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = EXPORT_SHEET_NAME

    for col, (header, width) in enumerate(EXPORT_COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = "A2"

    for row, capa in enumerate(capas, 2):
        for col, value in enumerate(capa_export_row(capa, names), 1):
            ws.cell(row=row, column=col, value=value).alignment = WRAP

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
