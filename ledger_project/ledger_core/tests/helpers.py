import io

import openpyxl


def xlsx_bytes(header, *rows):
    """Build an in-memory workbook with one sheet."""
    wb = openpyxl.Workbook()
    sheet = wb.active
    sheet.append(list(header))
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def csv_bytes(*lines):
    return ("\n".join(lines) + "\n").encode("utf-8")
