import io

import pytest
from reportlab.lib.pagesizes import A4, letter
from reportlab.pdfgen import canvas

STATEMENT_HEADER = [
    "Deutsche Bank Kontoauszug",
    "Konto 1234567 Zeitraum 01.03.2024 bis 31.03.2024",
    "Alter Kontostand 1.000,00",
]

STATEMENT_PAGE_ONE = [
    "10.03.2024 10.03.2024 KARTENZAHLUNG REWE SAGT DANKE 10.03 12:15 Berlin -49,99",
    "12.03.2024 12.03.2024 KARTENZAHLUNG ohne Betrag",
]

STATEMENT_PAGE_TWO = [
    "15.03.2024 15.03.2024 GUTSCHRIFT ACME GMBH GEHALT 2.500,00",
    "Neuer Kontostand 3.450,01",
]


def _draw_lines(c: canvas.Canvas, lines: list[str]) -> None:
    y = 780
    for line in lines:
        c.drawString(40, y, line)
        y -= 18


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Generate a minimal single-page PDF with known text content."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Hello PDF World")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Generate a two-page PDF with known text on each page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.drawString(72, 720, "Page one content")
    c.showPage()
    c.drawString(72, 720, "Page two content")
    c.save()
    return buf.getvalue()


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Generate a valid PDF with no text content (blank page)."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture()
def statement_pdf_bytes() -> bytes:
    """Two-page Deutsche Bank statement: two valid rows, one row without an amount."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle("Kontoauszug 03-2024")
    c.setAuthor("Deutsche Bank")
    _draw_lines(c, STATEMENT_HEADER + STATEMENT_PAGE_ONE)
    c.showPage()
    _draw_lines(c, STATEMENT_PAGE_TWO)
    c.save()
    return buf.getvalue()


@pytest.fixture()
def statement_text() -> str:
    return "\n".join(STATEMENT_HEADER + STATEMENT_PAGE_ONE) + "\n\n" + "\n".join(STATEMENT_PAGE_TWO)
