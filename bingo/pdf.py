"""
PDF writer - executes a DocumentLayout on a ReportLab canvas.

Layout coordinates are millimetres from the top-left corner; ReportLab
works in points from the bottom-left, so every command is flipped here.
"""

import logging
from io import BytesIO

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .compositor import DocumentLayout
from .errors import DocumentEncodingError
from .layout import Rect
from .renderer import DrawCommand, DrawImage, DrawStar, DrawText, FillRect, StrokeRect, star_points

logger = logging.getLogger(__name__)

TITLE_FONT = "Helvetica"


class PdfDocumentWriter:
    """Renders DocumentLayouts to PDF bytes."""

    def __init__(self, font: str = TITLE_FONT):
        self.font = font

    def write(self, document: DocumentLayout, title: str = "") -> bytes:
        """
        Render every page.

        Raises:
            DocumentEncodingError: if the PDF cannot be assembled
        """
        buffer = BytesIO()
        try:
            pdf = canvas.Canvas(
                buffer,
                pagesize=(document.width * mm, document.height * mm),
                pageCompression=1,
            )
            if title:
                pdf.setTitle(title)

            for page in document.pages:
                for command in page.commands:
                    self._execute(pdf, command, document.height)
                pdf.showPage()

            pdf.save()
        except Exception as e:
            logger.error(f"PDF assembly failed: {e}")
            raise DocumentEncodingError(f"PDF assembly failed: {e}") from e

        data = buffer.getvalue()
        logger.info(f"PDF written: {document.page_count} pages, {len(data)} bytes")
        return data

    def _box(self, rect: Rect, page_height: float):
        """(x, y, w, h) in points with a bottom-left origin."""
        return (
            rect.x * mm,
            (page_height - rect.bottom) * mm,
            rect.width * mm,
            rect.height * mm,
        )

    def _execute(self, pdf: canvas.Canvas, command: DrawCommand, page_height: float) -> None:
        if isinstance(command, FillRect):
            r, g, b = command.color
            pdf.setFillColorRGB(r / 255, g / 255, b / 255)
            pdf.setFillAlpha(command.alpha)
            x, y, w, h = self._box(command.rect, page_height)
            if command.radius > 0:
                pdf.roundRect(x, y, w, h, command.radius * mm, stroke=0, fill=1)
            else:
                pdf.rect(x, y, w, h, stroke=0, fill=1)
            pdf.setFillAlpha(1)

        elif isinstance(command, StrokeRect):
            r, g, b = command.color
            pdf.setStrokeColorRGB(r / 255, g / 255, b / 255)
            pdf.setLineWidth(command.width * mm)
            x, y, w, h = self._box(command.rect, page_height)
            if command.radius > 0:
                pdf.roundRect(x, y, w, h, command.radius * mm, stroke=1, fill=0)
            else:
                pdf.rect(x, y, w, h, stroke=1, fill=0)

        elif isinstance(command, DrawImage):
            x, y, w, h = self._box(command.rect, page_height)
            try:
                pdf.drawImage(ImageReader(BytesIO(command.data)), x, y, width=w, height=h)
            except Exception as e:
                logger.warning(f"Skipping image {command.source}: {e}")

        elif isinstance(command, DrawText):
            r, g, b = command.color
            pdf.setFillColorRGB(r / 255, g / 255, b / 255)
            pdf.setFont(self.font, command.size)
            pdf.drawCentredString(command.x * mm, (page_height - command.y) * mm, command.text)

        elif isinstance(command, DrawStar):
            r, g, b = command.color
            pdf.setFillColorRGB(r / 255, g / 255, b / 255)
            path = pdf.beginPath()
            points = star_points(command.center, command.radius)
            for i, (px, py) in enumerate(points):
                if i == 0:
                    path.moveTo(px * mm, (page_height - py) * mm)
                else:
                    path.lineTo(px * mm, (page_height - py) * mm)
            path.close()
            pdf.drawPath(path, stroke=0, fill=1)
