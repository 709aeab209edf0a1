from datetime import date
from pathlib import Path
from textwrap import wrap
from typing import Iterable, Optional

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas

from ..config import settings
from ..constants import ANNUAL_FEE, MORTUARY_FEE, OPERATIONAL_FEE

MARGIN_X = 72  # 1 inch
MARGIN_Y = 72
MAX_CHARS_PER_LINE = 90


def _output_path(filename: str) -> Path:
    base = Path(settings.pdf_output_dir)
    base.mkdir(parents=True, exist_ok=True)
    return base / filename


def _write_pdf(filename: str, title: str, lines: Iterable[str]) -> str:
    path = _output_path(filename)
    pdf_canvas = canvas.Canvas(str(path), pagesize=LETTER)
    width, height = LETTER

    pdf_canvas.setFont("Helvetica-Bold", 20)
    pdf_canvas.drawCentredString(width / 2, height - MARGIN_Y, title)

    text_stream = pdf_canvas.beginText(MARGIN_X, height - MARGIN_Y - 48)
    text_stream.setFont("Helvetica", 12)
    for line in lines:
        normalized = "" if line is None else str(line)
        if normalized.strip() == "":
            text_stream.textLine("")
            continue
        for chunk in wrap(normalized, MAX_CHARS_PER_LINE) or [normalized]:
            text_stream.textLine(chunk)

    pdf_canvas.drawText(text_stream)
    pdf_canvas.showPage()
    pdf_canvas.save()
    return str(path)


def generate_membership_certificate(member, issued_on: Optional[date] = None) -> str:
    issued_on = issued_on or date.today()
    lines = [
        settings.association_name,
        "",
        "This certifies that",
        "",
        f"    {member.name}",
        "",
        f"Member No. {member.member_number}, registered in {member.registration_year},",
        f"is a member of the association with status: {member.status}.",
        "",
        f"Annual contribution: {ANNUAL_FEE:.2f} (mortuary {MORTUARY_FEE:.2f}, operational {OPERATIONAL_FEE:.2f})",
        f"Years in arrears: {member.delinquent_years}",
        "",
        f"Issued on {issued_on.isoformat()}",
    ]
    return _write_pdf(f"certificate_{member.member_number}.pdf", "Certificate of Membership", lines)
