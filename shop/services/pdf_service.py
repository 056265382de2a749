# shop/services/pdf_service.py
"""
Invoice PDF rendering with reportlab.

Layout is a vertical flow: ``FlowCursor`` tracks the distance from the top
of the current page, each section reserves its height before drawing, and
a section that does not fit moves to a new page. Item table rows continue
on the next page under a repeated column header.
"""
import io
import logging
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal

import requests
from django.utils import timezone
from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from shop import pricing

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

BRAND = HexColor("#10b981")
BRAND_DARK = HexColor("#16a34a")
BRAND_LIGHT = HexColor("#f0fdf4")
PANEL = HexColor("#f8f9fa")
PANEL_BORDER = HexColor("#e9ecef")
ROW_BORDER = HexColor("#f3f4f6")
TEXT = HexColor("#333333")
MUTED = HexColor("#666666")
FAINT = HexColor("#888888")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

HEADER_HEIGHT = 195
DETAILS_HEIGHT = 85
LOYALTY_HEIGHT = 110
TABLE_TITLE_HEIGHT = 25
TABLE_HEADER_HEIGHT = 30
ROW_HEIGHT = 28
FOOTER_HEIGHT = 120

# (label, x offset from the table's left edge)
COLUMNS = (
    ("ITEM", 8),
    ("QTY", 260),
    ("PRICE", 310),
    ("DISCOUNT", 380),
    ("TOTAL", 465),
)
ITEM_NAME_WIDTH = 240

LOGO_FILENAME = "brand-logo.img"
LOGO_FALLBACK = "CAKE"

# Symbols (emoji), surrogates, private use, unassigned, control and format characters
STRIPPED_CATEGORIES = frozenset({"So", "Cs", "Co", "Cn", "Cc", "Cf"})


def sanitize_text(text):
    """Drop characters the built-in PDF fonts cannot draw and collapse whitespace."""
    if text is None:
        return ""
    kept = []
    for char in str(text):
        if char.isspace():
            kept.append(" ")
        elif ord(char) > 0xFFFF or unicodedata.category(char) in STRIPPED_CATEGORIES:
            continue
        else:
            kept.append(char)
    return " ".join("".join(kept).split())


def _fit(text, width, font=FONT, size=9):
    """Truncate with an ellipsis so ``text`` fits ``width`` points."""
    if stringWidth(text, font, size) <= width:
        return text
    while text and stringWidth(text + "...", font, size) > width:
        text = text[:-1]
    return text + "..."


# ===================== RESULT TYPES =====================
@dataclass(frozen=True)
class PlacedSection:
    name: str
    page: int
    top: float
    height: float


@dataclass(frozen=True)
class RenderedRow:
    position: int
    name: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal
    page: int


@dataclass
class RenderedDocument:
    content: bytes
    filename: str
    rows: list = field(default_factory=list)
    sections: list = field(default_factory=list)
    page_count: int = 1

    def section_names(self):
        return [section.name for section in self.sections]


# ===================== FLOW CURSOR =====================
class FlowCursor:
    """Running top-down position on the current page."""

    def __init__(self, pdf, top=0, bottom=PAGE_HEIGHT - MARGIN):
        self.pdf = pdf
        self.page = 1
        self.top = top
        self.bottom = bottom
        self.sections = []

    def fits(self, height):
        return self.top + height <= self.bottom

    def new_page(self):
        self.pdf.showPage()
        self.page += 1
        self.top = MARGIN

    def reserve(self, name, height, advance=True):
        """Claim ``height`` points for a section, breaking the page if needed. Returns the section top."""
        if not self.fits(height) and self.top > MARGIN:
            self.new_page()
        start = self.top
        self.sections.append(PlacedSection(name, self.page, start, height))
        if advance:
            self.top += height
        return start

    @staticmethod
    def y(top):
        """reportlab y coordinate for a distance from the page top."""
        return PAGE_HEIGHT - top


# ===================== RENDERER =====================
class InvoiceRenderer:
    def __init__(self, config, loyalty_reminder=None, clock=timezone.now, session=None):
        self.config = config
        self.loyalty_reminder = loyalty_reminder
        self.clock = clock
        self.session = session or requests
        self._logo_unavailable = False

    @property
    def scratch_dir(self):
        return self.config.scratch_dir

    # ---------- drawing helpers ----------
    @staticmethod
    def _text(pdf, x, top, text, size=10, font=FONT, color=TEXT, align="left", width=None):
        pdf.setFont(font, size)
        pdf.setFillColor(color)
        baseline = FlowCursor.y(top + size)
        text = sanitize_text(text)
        if align == "center" and width:
            pdf.drawCentredString(x + width / 2, baseline, text)
        elif align == "right" and width:
            pdf.drawRightString(x + width, baseline, text)
        else:
            pdf.drawString(x, baseline, text)

    @staticmethod
    def _box(pdf, x, top, width, height, fill, stroke=None, line_width=1):
        pdf.setFillColor(fill)
        pdf.setStrokeColor(stroke or fill)
        pdf.setLineWidth(line_width)
        pdf.rect(x, FlowCursor.y(top + height), width, height, fill=1, stroke=1)

    @staticmethod
    def _rule(pdf, top, color=BRAND, line_width=2, x1=MARGIN, x2=PAGE_WIDTH - MARGIN):
        pdf.setStrokeColor(color)
        pdf.setLineWidth(line_width)
        pdf.line(x1, FlowCursor.y(top), x2, FlowCursor.y(top))

    # ---------- logo ----------
    def ensure_logo(self):
        """Path to the cached logo, downloading it once. ``None`` when unavailable."""
        path = self.scratch_dir / LOGO_FILENAME
        if path.exists():
            return path
        if self._logo_unavailable or not self.config.logo_url:
            return None

        try:
            response = self.session.get(self.config.logo_url, timeout=self.config.timeout)
            response.raise_for_status()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(response.content)
        except (requests.RequestException, OSError) as e:
            logger.warning(f"Logo download failed, using text fallback: {e}")
            self._logo_unavailable = True
            return None
        return path

    def _draw_logo(self, pdf):
        path = self.ensure_logo()
        if path is not None:
            try:
                image = ImageReader(str(path))
                pdf.saveState()
                clip = pdf.beginPath()
                clip.circle(80, FlowCursor.y(80), 30)
                pdf.clipPath(clip, stroke=0, fill=0)
                pdf.drawImage(image, 50, FlowCursor.y(110), width=60, height=60, mask="auto")
                pdf.restoreState()
                pdf.setStrokeColor(BRAND)
                pdf.setLineWidth(2.5)
                pdf.circle(80, FlowCursor.y(80), 30, stroke=1, fill=0)
                return
            except Exception as e:
                logger.warning(f"Logo could not be drawn, using text fallback: {e}")
        self._text(pdf, 57, 65, LOGO_FALLBACK, size=24, font=FONT_BOLD, color=BRAND)

    # ---------- sections ----------
    def _header(self, pdf, cursor, bill, created_at):
        cursor.reserve("header", HEADER_HEIGHT)
        self._box(pdf, 0, 0, PAGE_WIDTH, 160, BRAND_LIGHT)
        self._draw_logo(pdf)

        self._text(pdf, 125, 55, self.config.business_name, size=30, font=FONT_BOLD, color=BRAND)
        self._text(pdf, 125, 92, self.config.business_tagline, size=11, color=MUTED)
        self._text(pdf, 125, 110, "Made with Love & Passion", size=9, color=FAINT)

        box_x = PAGE_WIDTH - 200
        self._box(pdf, box_x, 50, 150, 75, BRAND)
        self._text(pdf, box_x, 60, "INVOICE", size=22, font=FONT_BOLD, color=white, align="center", width=150)
        self._text(pdf, box_x, 95, f"Bill #: {bill.bill_number}", size=10, color=white, align="center", width=150)
        self._text(pdf, box_x, 133, f"Date: {created_at:%d %B %Y}", size=9, color=MUTED, align="center", width=150)

        self._rule(pdf, 170, line_width=3)

    def _bill_meta(self, pdf, cursor, created_at):
        # Drawn beside the customer box, so it does not advance the cursor
        top = cursor.reserve("bill_meta", 65, advance=False)
        x = PAGE_WIDTH - 250
        self._box(pdf, x, top, 200, 65, PANEL, PANEL_BORDER)
        self._text(pdf, x + 10, top + 10, "BILL INFORMATION", size=12, font=FONT_BOLD, color=BRAND)
        self._text(pdf, x + 10, top + 32, f"Created: {created_at:%I:%M %p}", size=9, color=MUTED)
        self._text(pdf, x + 10, top + 48, "Payment Received", size=9, font=FONT_BOLD, color=BRAND_DARK)

    def _customer(self, pdf, cursor, bill):
        top = cursor.reserve("customer", DETAILS_HEIGHT)
        self._box(pdf, MARGIN, top, 250, 65, PANEL, PANEL_BORDER)
        self._text(pdf, 60, top + 10, "BILL TO", size=12, font=FONT_BOLD, color=BRAND)
        self._text(pdf, 60, top + 30, bill.customer_name or "N/A", size=11, font=FONT_BOLD)
        self._text(pdf, 60, top + 48, "Phone:", size=10, color=MUTED)
        self._text(pdf, 100, top + 48, bill.customer_phone or "N/A", size=10, font=FONT_BOLD)

    def _loyalty(self, pdf, cursor, loyalty):
        top = cursor.reserve("loyalty", LOYALTY_HEIGHT)
        self._box(pdf, MARGIN, top, CONTENT_WIDTH, 95, BRAND_LIGHT, BRAND)
        self._text(pdf, 65, top + 15, "*** LOYALTY REWARD APPLIED! ***", size=13, font=FONT_BOLD, color=BRAND_DARK)
        message = loyalty.get("message") or "Congratulations! You received a loyalty discount."
        self._text(pdf, 65, top + 38, _fit(sanitize_text(message), CONTENT_WIDTH - 30), size=9,
                   color=HexColor("#15803d"))
        amount = pricing.format_rupees(loyalty.get("discount_amount") or 0)
        percentage = Decimal(str(loyalty.get("discount_percentage") or 0)).normalize()
        self._text(pdf, 65, top + 65, f"You Saved:  {amount} ({percentage:f}%)", size=11, font=FONT_BOLD,
                   color=BRAND_DARK)

    def _table_header(self, pdf, cursor, continued=False):
        name = "items_header_continued" if continued else "items_header"
        height = TABLE_HEADER_HEIGHT if continued else TABLE_TITLE_HEIGHT + TABLE_HEADER_HEIGHT
        # Header plus at least one row stays together
        if not cursor.fits(height + ROW_HEIGHT) and cursor.top > MARGIN:
            cursor.new_page()
        top = cursor.reserve(name, height)
        if not continued:
            self._text(pdf, MARGIN, top, "ORDER DETAILS", size=13, font=FONT_BOLD)
            top += TABLE_TITLE_HEIGHT
        self._box(pdf, MARGIN, top, CONTENT_WIDTH, 25, BRAND)
        for label, offset in COLUMNS:
            self._text(pdf, MARGIN + offset, top + 8, label, size=10, font=FONT_BOLD, color=white)

    def _table(self, pdf, cursor, items):
        self._table_header(pdf, cursor)
        rows = []
        for position, item in enumerate(items):
            if not cursor.fits(ROW_HEIGHT):
                cursor.new_page()
                self._table_header(pdf, cursor, continued=True)

            top = cursor.top
            cursor.top += ROW_HEIGHT
            background = BRAND_LIGHT if position % 2 == 0 else white
            self._box(pdf, MARGIN, top, CONTENT_WIDTH, ROW_HEIGHT, background, ROW_BORDER, line_width=0.5)

            name = _fit(sanitize_text(item.name) or "Unknown Item", ITEM_NAME_WIDTH)
            discount = item.line_discount
            self._text(pdf, MARGIN + 8, top + 8, name, size=9)
            self._text(pdf, MARGIN + 265, top + 8, str(item.quantity), size=9, font=FONT_BOLD)
            self._text(pdf, MARGIN + 310, top + 8, pricing.format_rupees(item.unit_price), size=9)
            if discount > 0:
                self._text(pdf, MARGIN + 380, top + 8, f"-{pricing.format_rupees(discount)}", size=9,
                           color=BRAND_DARK)
            else:
                self._text(pdf, MARGIN + 380, top + 8, pricing.format_rupees(0), size=9, color=MUTED)
            self._text(pdf, MARGIN + 460, top + 8, pricing.format_rupees(item.line_total), size=9,
                       font=FONT_BOLD)

            rows.append(RenderedRow(
                position=position,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=discount,
                total=item.line_total,
                page=cursor.page,
            ))

        self._rule(pdf, cursor.top)
        cursor.top += 15
        return rows

    def _totals(self, pdf, cursor, bill):
        has_discount = bill.total_discount and bill.total_discount > 0
        box_height = 110 if has_discount else 80
        top = cursor.reserve("totals", box_height + 15)
        left = PAGE_WIDTH - 220
        width = 190
        self._box(pdf, left - 10, top, width, box_height, BRAND_LIGHT, BRAND)

        line = top + 15
        self._text(pdf, left, line, "Subtotal:", size=11, color=MUTED)
        self._text(pdf, left + 90, line, pricing.format_rupees(bill.subtotal), size=11, font=FONT_BOLD,
                   color=MUTED, align="right", width=80)
        line += 25

        if has_discount:
            self._text(pdf, left, line, "Discount:", size=11, color=BRAND_DARK)
            self._text(pdf, left + 90, line, f"-{pricing.format_rupees(bill.total_discount)}", size=11,
                       font=FONT_BOLD, color=BRAND_DARK, align="right", width=80)
            line += 25

        self._rule(pdf, line - 5, line_width=1, x1=left, x2=left + width - 20)
        self._box(pdf, left - 10, line, width, 35, BRAND)
        self._text(pdf, left, line + 10, "TOTAL:", size=14, font=FONT_BOLD, color=white)
        self._text(pdf, left + 80, line + 9, pricing.format_rupees(bill.total), size=16, font=FONT_BOLD,
                   color=white, align="right", width=90)

    def _footer(self, pdf, cursor, bill):
        top = cursor.reserve("footer", FOOTER_HEIGHT) + 20
        business = self.config.business_name
        self._rule(pdf, top - 15)
        self._box(pdf, 0, top, PAGE_WIDTH, 80, BRAND_LIGHT)
        self._text(pdf, MARGIN, top + 10, f"Thank You for Choosing {business}!", size=12, font=FONT_BOLD,
                   color=BRAND, align="center", width=CONTENT_WIDTH)
        self._text(pdf, MARGIN, top + 30, "Artisan Cakes Crafted with Passion | Made to Order", size=9,
                   color=MUTED, align="center", width=CONTENT_WIDTH)
        if not bill.loyalty_applied and self.loyalty_reminder:
            self._text(pdf, MARGIN, top + 47, f"* {self.loyalty_reminder} *", size=8, font=FONT_BOLD,
                       color=BRAND_DARK, align="center", width=CONTENT_WIDTH)
        self._text(pdf, MARGIN, top + 62, f"{business} - Where Every Cake Tells a Story", size=8,
                   font=FONT_BOLD, color=BRAND, align="center", width=CONTENT_WIDTH)

    # ---------- public API ----------
    def render(self, bill, items=None):
        """Render ``bill`` to PDF bytes. ``items`` defaults to the bill's stored line items."""
        items = list(bill.items.all()) if items is None else list(items)
        created_at = timezone.localtime(bill.created_at or self.clock())

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4)
        pdf.setTitle(f"Invoice {bill.bill_number}")
        pdf.setAuthor(self.config.business_name)
        cursor = FlowCursor(pdf)

        self._header(pdf, cursor, bill, created_at)
        self._bill_meta(pdf, cursor, created_at)
        self._customer(pdf, cursor, bill)
        if bill.loyalty_applied:
            self._loyalty(pdf, cursor, bill.loyalty_info)
        rows = self._table(pdf, cursor, items)
        self._totals(pdf, cursor, bill)
        self._footer(pdf, cursor, bill)

        pdf.showPage()
        pdf.save()

        millis = int(self.clock().timestamp() * 1000)
        document = RenderedDocument(
            content=buffer.getvalue(),
            filename=f"bill_{bill.bill_number}_{millis}.pdf",
            rows=rows,
            sections=cursor.sections,
            page_count=cursor.page,
        )
        logger.info(f"Invoice rendered for {bill.bill_number}: {len(rows)} rows, {cursor.page} page(s)")
        return document

    # ---------- scratch files ----------
    def write_scratch(self, document):
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        path = self.scratch_dir / document.filename
        path.write_bytes(document.content)
        return path

    def remove_scratch(self, path):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove scratch file {path}: {e}")

    def sweep_scratch(self, max_age_seconds=None):
        """Remove scratch invoices older than ``max_age_seconds``. Returns the removed file names."""
        max_age_seconds = max_age_seconds or self.config.scratch_max_age_seconds
        if not self.scratch_dir.exists():
            return []

        cutoff = self.clock().timestamp() - max_age_seconds
        removed = []
        for path in self.scratch_dir.glob("bill_*.pdf"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path.name)
            except OSError as e:
                logger.warning(f"Could not sweep scratch file {path}: {e}")

        if removed:
            logger.info(f"Swept {len(removed)} scratch invoice(s) from {self.scratch_dir}")
        return removed
