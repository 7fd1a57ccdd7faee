"""
Rendering and export of mod operation results.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import openpyxl
import pandas as pd

from ..base import FileBasedTool
from .models import Freshness, ListResult, ModStatus, SyncResult

logger = logging.getLogger(__name__)

LIST_COLUMNS = ['workshop_id', 'name', 'folder', 'status', 'synced_at', 'keys', 'economy']


def format_result(result: SyncResult, detailed: bool = False) -> str:
    """
    Human-readable summary of an install, update or uninstall.

    Failed mods are always listed; ``detailed`` lists every mod.
    """
    lines = []
    for outcome in result.outcomes:
        if not detailed and outcome.status != ModStatus.FAILED:
            continue
        line = f"{outcome.mod_id:>12}  {outcome.status.value:<10}"
        if outcome.message:
            line += f"  {outcome.message}"
        lines.append(line)

    counts = {status: len(result.by_status(status)) for status in ModStatus}
    summary = ", ".join(f"{count} {status.value}" for status, count in counts.items() if count)
    if summary:
        lines.append(f"Summary: {summary}")

    for conflict in result.key_conflicts:
        lines.append(f"Key conflict: {conflict.describe()}")
    for warning in result.warnings:
        lines.append(f"Warning: {warning}")
    return "\n".join(lines)


def format_listing(listing: ListResult) -> str:
    """Human-readable table of installed mods and unmanaged folders."""
    if not listing.mods:
        lines = ["No mods installed"]
    else:
        lines = [f"{'ID':>12}  {'STATUS':<16}  NAME"]
        for item in listing.mods:
            lines.append(f"{item.record.workshop_id:>12}  {item.freshness.value:<16}  {item.record.name}")
        pending = sum(1 for item in listing.mods if item.freshness == Freshness.UPDATE_AVAILABLE)
        lines.append(f"{len(listing.mods)} installed, {pending} with updates available")
    if listing.unmanaged:
        lines.append(f"Unmanaged folders: {', '.join(listing.unmanaged)}")
    return "\n".join(lines)


class ModListExporter(FileBasedTool):
    """
    Export a mod listing to CSV or Excel.

    The format follows the output file extension: ``.xlsx`` writes an Excel
    workbook, anything else a CSV file.
    """

    def rows(self, listing: ListResult) -> List[Dict[str, Any]]:
        return [{
            'workshop_id': item.record.workshop_id,
            'name': item.record.name,
            'folder': item.record.folder,
            'status': item.freshness.value,
            'synced_at': item.record.synced_at,
            'keys': ";".join(item.record.keys),
            'economy': item.record.economy,
        } for item in listing.mods]

    def run(self, listing: ListResult, output_path: str) -> str:
        return self.export(listing, output_path)

    def export(self, listing: ListResult, output_path: str) -> str:
        """
        Write the listing and return the absolute path of the written file.
        """
        rows = self.rows(listing)
        if Path(output_path).suffix.lower() != '.xlsx':
            return self.write_csv(rows, output_path, headers=LIST_COLUMNS)

        resolved_path = self.resolve_path(output_path)
        os.makedirs(os.path.dirname(resolved_path), exist_ok=True)

        df = pd.DataFrame(rows, columns=LIST_COLUMNS)
        with pd.ExcelWriter(resolved_path, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Mods')
            worksheet = writer.sheets['Mods']
            # Text format keeps Workshop ids from being read as numbers
            for idx, column in enumerate(df.columns, 1):
                letter = openpyxl.utils.get_column_letter(idx)
                worksheet.column_dimensions[letter].width = max(12, len(column) + 2)
                for cell in worksheet[letter][1:]:
                    cell.number_format = '@'

        logger.info(f"Mod list exported to {resolved_path}")
        return resolved_path
