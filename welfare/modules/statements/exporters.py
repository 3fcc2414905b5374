"""
Statement exports.

PDF goes through WeasyPrint from an HTML page; spreadsheets through a pandas
DataFrame written with the openpyxl engine.
"""
from html import escape
from io import BytesIO
from decimal import Decimal

import pandas as pd
from openpyxl.styles import Font, PatternFill, Alignment

from welfare.core.config import settings
from welfare.core.exceptions import UpstreamFailure
from welfare.modules.statements.schemas import Statement

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STATEMENT_CSS = """
@page {
    size: A4;
    margin: 2cm 1.5cm;

    @bottom-right {
        content: "Page " counter(page) " of " counter(pages);
        font-size: 9pt;
        color: #6B7280;
    }
}

body { font-family: Arial, sans-serif; font-size: 10pt; color: #1F2937; }
h1 { color: #14213D; margin-bottom: 4px; }
table { width: 100%; border-collapse: collapse; margin-top: 1rem; }
thead { display: table-header-group; }
tr { page-break-inside: avoid; }
th {
    background-color: #14213D;
    color: #fff;
    padding: 8px;
    text-align: left;
    font-size: 9pt;
    text-transform: uppercase;
}
td { border-bottom: 1px solid #E5E7EB; padding: 6px 8px; }
.text-right { text-align: right; }
.totals td { font-weight: 700; background-color: #FEF3C7; }
"""

COLUMNS = ["Loan ID", "Type", "Purpose", "Status", "Amount Requested", "Total Due", "Amount Paid", "Balance Due"]
MONEY_COLUMNS = COLUMNS[4:]


def statement_filename(statement: Statement, extension: str) -> str:
    slug = "_".join(statement.member_name.lower().split()) or str(statement.member_id)
    return f"statement_{slug}_{statement.generated_at.strftime('%Y%m%d')}.{extension}"


def _money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def render_statement_html(statement: Statement) -> str:
    rows = "".join(
        f"""
        <tr>
          <td>{line.loan_id}</td>
          <td>{escape(line.loan_type.value.title())}</td>
          <td>{escape(line.purpose)}</td>
          <td>{escape(line.status.value.replace('_', ' '))}</td>
          <td class="text-right">{_money(line.amount_requested)}</td>
          <td class="text-right">{_money(line.total_due)}</td>
          <td class="text-right">{_money(line.amount_paid)}</td>
          <td class="text-right">{_money(line.balance_due)}</td>
        </tr>"""
        for line in statement.lines
    )
    if not rows:
        rows = '<tr><td colspan="8">No loans on record.</td></tr>'

    headers = "".join(f"<th>{escape(c)}</th>" for c in COLUMNS)
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Loan Statement - {escape(statement.member_name)}</title></head>
<body>
  <h1>{escape(settings.ORGANIZATION_NAME)} Loan Statement</h1>
  <p>
    Member: <strong>{escape(statement.member_name)}</strong> ({escape(statement.member_email)})<br>
    Generated: {statement.generated_at.strftime('%d %B %Y %H:%M')} UTC<br>
    Amounts in {escape(statement.currency)}
  </p>
  <table>
    <thead><tr>{headers}</tr></thead>
    <tbody>{rows}
      <tr class="totals">
        <td colspan="4">TOTAL</td>
        <td class="text-right">{_money(statement.total_requested)}</td>
        <td class="text-right">{_money(statement.total_due)}</td>
        <td class="text-right">{_money(statement.total_paid)}</td>
        <td class="text-right">{_money(statement.total_balance)}</td>
      </tr>
    </tbody>
  </table>
</body>
</html>"""


def render_pdf(statement: Statement) -> bytes:
    """Render the statement to PDF bytes"""
    # WeasyPrint needs system Pango/Cairo; import on first use
    try:
        from weasyprint import HTML, CSS
    except (ImportError, OSError) as e:
        raise UpstreamFailure(f"PDF generation is not available in this environment: {e}") from e

    html = HTML(string=render_statement_html(statement))
    return html.write_pdf(stylesheets=[CSS(string=STATEMENT_CSS)])


def render_xlsx(statement: Statement) -> bytes:
    """Render the statement to an .xlsx workbook"""
    output = BytesIO()
    writer = pd.ExcelWriter(output, engine='openpyxl')

    df = pd.DataFrame(
        [
            {
                'Loan ID': line.loan_id,
                'Type': line.loan_type.value.title(),
                'Purpose': line.purpose,
                'Status': line.status.value.replace('_', ' '),
                'Amount Requested': float(line.amount_requested),
                'Total Due': float(line.total_due),
                'Amount Paid': float(line.amount_paid),
                'Balance Due': float(line.balance_due),
            }
            for line in statement.lines
        ],
        columns=COLUMNS
    )

    totals_row = pd.DataFrame([{
        'Loan ID': '',
        'Type': '',
        'Purpose': 'TOTAL',
        'Status': '',
        'Amount Requested': float(statement.total_requested),
        'Total Due': float(statement.total_due),
        'Amount Paid': float(statement.total_paid),
        'Balance Due': float(statement.total_balance),
    }])
    df = pd.concat([df, totals_row], ignore_index=True)

    df.to_excel(writer, sheet_name='Loan Statement', index=False)
    worksheet = writer.sheets['Loan Statement']

    header_fill = PatternFill(start_color='14213D', end_color='14213D', fill_type='solid')
    header_font = Font(bold=True, color='FFFFFF', size=11)
    for col_num in range(1, len(COLUMNS) + 1):
        cell = worksheet.cell(row=1, column=col_num)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')

    last_row = len(df) + 1
    totals_fill = PatternFill(start_color='FEF3C7', end_color='FEF3C7', fill_type='solid')
    for col_num in range(1, len(COLUMNS) + 1):
        cell = worksheet.cell(row=last_row, column=col_num)
        cell.fill = totals_fill
        cell.font = Font(bold=True)

    first_money_col = COLUMNS.index(MONEY_COLUMNS[0]) + 1
    for row in range(2, last_row + 1):
        for col in range(first_money_col, len(COLUMNS) + 1):
            worksheet.cell(row=row, column=col).number_format = '#,##0.00'

    for letter, width in zip("ABCDEFGH", (10, 12, 30, 18, 18, 15, 15, 15)):
        worksheet.column_dimensions[letter].width = width

    writer.close()
    output.seek(0)
    return output.read()
