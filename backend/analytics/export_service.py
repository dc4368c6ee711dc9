from __future__ import annotations

import html as _html
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .converters import to_object_array
from .errors import CardExecutionError, ScriptExecutionError
from .formatting import format_value
from .pipeline import SandboxLimits, apply_script, build_card_context, fetch_card_results
from .schemas import CardConfig, DataSource, FormattingSettings, Variable

EXCEL_MEDIA_TYPE = "application/vnd.ms-excel"

_TAG_RE = re.compile(r"<[^>]*>")
_SHEET_NAME_RE = re.compile(r"[^a-zA-Z0-9]")

_TH_STYLE = "background-color: #4338ca; color: #ffffff; font-weight: bold; padding: 8px; border: 1px solid #e2e8f0;"
_TD_STYLE = "border: 1px solid #e2e8f0; padding: 8px;"

_WORKBOOK_TEMPLATE = """<html xmlns:o="urn:schemas-microsoft-com:office:office" xmlns:x="urn:schemas-microsoft-com:office:excel" xmlns="http://www.w3.org/TR/REC-html40">
<head>
<meta charset="UTF-8">
<!--[if gte mso 9]>
<xml>
<x:ExcelWorkbook>
<x:ExcelWorksheets>
<x:ExcelWorksheet>
<x:Name>{sheet}</x:Name>
<x:WorksheetOptions>
<x:DisplayGridlines/>
</x:WorksheetOptions>
</x:ExcelWorksheet>
</x:ExcelWorksheets>
</x:ExcelWorkbook>
</xml>
<![endif]-->
</head>
<body>
<table>
<thead>{head}</thead>
<tbody>{body}</tbody>
</table>
</body>
</html>
"""


@dataclass
class ExportFile:
    filename: str
    content: str
    media_type: str = EXCEL_MEDIA_TYPE


def sheet_name(name: str) -> str:
    return _SHEET_NAME_RE.sub("", name)[:31]


def export_filename(name: str) -> str:
    return re.sub(r"\s+", "_", name).lower() + ".xls"


def render_excel_html(rows: List[Dict[str, str]], name: str) -> str:
    """Excel-compatible HTML table for already formatted rows."""
    if not rows:
        raise CardExecutionError("No data was returned from the query to export.")
    headers = list(rows[0].keys())
    head = "<tr>" + "".join(f'<th style="{_TH_STYLE}">{_html.escape(h)}</th>' for h in headers) + "</tr>"
    body = "".join(
        "<tr>" + "".join(f'<td style="{_TD_STYLE}">{_html.escape(row.get(h) or "")}</td>' for h in headers) + "</tr>"
        for row in rows
    )
    return _WORKBOOK_TEMPLATE.format(sheet=sheet_name(name), head=head, body=body)


def format_rows(
    rows: Sequence[Dict[str, Any]],
    column_types: Optional[Dict[str, str]],
    settings: Optional[FormattingSettings],
) -> List[Dict[str, str]]:
    if not rows:
        return []
    columns = list(rows[0].keys())
    types = column_types or {}
    return [{col: format_value(row.get(col), types.get(col), settings) for col in columns} for row in rows]


def export_card(
    card: CardConfig,
    data_sources: Sequence[DataSource],
    variables: Sequence[Variable],
    *,
    formatting: Optional[FormattingSettings] = None,
    library_script: Optional[str] = None,
    department: Optional[str] = None,
    owner: Optional[str] = None,
    limits: Optional[SandboxLimits] = None,
) -> ExportFile:
    """Fetch the full dataset of a card (row limits removed), post-process, format and render it."""
    ctx = build_card_context(
        card, variables, library_script=library_script, department=department, owner=owner, limits=limits
    )
    try:
        results = fetch_card_results(card, data_sources, ctx, department=department, owner=owner, strip_limits=True)
    except CardExecutionError as e:
        raise CardExecutionError(f"Failed to execute query for export: {e}") from e

    datasets = [to_object_array(r) for r in results]
    final_data = datasets[0] if datasets else []
    if card.postProcessingScript:
        try:
            final_data = apply_script(
                datasets, card.postProcessingScript, ctx.resolved, ctx.library_script, ctx.limits
            ).processed_data
        except ScriptExecutionError as e:
            raise CardExecutionError(f"Export failed during post-processing: {e.error.message}", e.logs) from e

    if not final_data:
        raise CardExecutionError("Resulting dataset is empty.")

    formatted = format_rows(final_data, card.columnTypes, formatting)
    title = ctx.substitute(_TAG_RE.sub("", card.title)) or ""
    name = title or "export"
    return ExportFile(filename=export_filename(name), content=render_excel_html(formatted, name))
