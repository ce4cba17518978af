#!/usr/bin/env python3
"""
Generates sample-data/daily_november_2025.xlsx, a daily activity sheet laid
out the way the team keeps it in Excel.

Run from the repo root:
    python sample-data/generate_xlsx.py

Quirks baked in:
  - Two title rows and a blank row above the header
  - Leading blank column A before "No"
  - Merged CLIENT and SERVICE cells (C6:C7, D6:D7) across two visits
  - A day-range date ("3-4 November 2025") and an Indonesian month name
  - A multi-line DETAIL ACTION cell
  - A "Jumlah" summary row at the bottom
"""

from pathlib import Path

import openpyxl
from openpyxl.styles import Alignment, Font

OUTPUT = Path(__file__).parent / "daily_november_2025.xlsx"

wb = openpyxl.Workbook()
ws = wb.active
ws.title = "Daily"

ws.append(["LAPORAN DAILY ACTIVITY TIM NETWORK"])
ws.append(["Periode: November 2025"])
ws.append([])
ws.append([None, "No", "CLIENT", "SERVICE", "CASE & ISSUE", "ACTION", "DATE", "PIC TIM", "DETAIL ACTION", "STATUS"])
for cell in ws[4]:
    cell.font = Font(bold=True)

data = [
    # blank  No    CLIENT               SERVICE  CASE & ISSUE             ACTION    DATE                 PIC TIM        DETAIL ACTION                          STATUS
    [None,   1,    "PT Acme Indonesia", "NET",   "Access point mati",     "Onsite", "3-4 November 2025", "Budi, Sari",  "Ganti access point\nUpdate firmware",  "Done"],      # row 5
    [None,   2,    "Epsilon Clinic",    "CCTV",  "NVR penuh",             "Remote", "5 November 2025",   "Rina",        "Hapus rekaman lama",                   "Progress"],  # row 6
    [None,   None, None,                None,    "NVR penuh lagi",        "Onsite", "12 November 2025",  "Rina & Andi", "Tambah hardisk",                       "Hold"],      # row 7
    [None,   "Jumlah"],                                                                                                                                                          # row 8
]
for row in data:
    ws.append(row)

# Merge AFTER writing so the blank cells below the anchor stay empty on export
ws.merge_cells("C6:C7")
ws.merge_cells("D6:D7")
ws["I5"].alignment = Alignment(wrap_text=True, vertical="top")

wb.save(OUTPUT)
print(f"Wrote {OUTPUT}")
