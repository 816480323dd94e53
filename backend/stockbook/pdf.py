import logging
import time
from pathlib import Path

from .errors import ExportError


def invoice_to_pdf_bytes(html: str) -> bytes:
    # imported lazily: WeasyPrint pulls in native libraries (pango, cairo)
    from weasyprint import HTML
    return HTML(string=html).write_pdf()


def generate_invoice_document(invoice_no: int, html: str, bills_dir) -> Path:
    """Print rendered invoice markup to ``bills_dir`` and return the file path."""
    out_dir = Path(bills_dir)
    path = out_dir / f'Invoice-{invoice_no}-{int(time.time() * 1000)}.pdf'
    try:
        pdf = invoice_to_pdf_bytes(html)
        out_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(pdf)
    except Exception as exc:
        logging.exception('Failed to write invoice %s: %s', invoice_no, exc)
        raise ExportError(f'Failed to generate invoice {invoice_no}') from exc
    logging.info('Wrote invoice %s to %s', invoice_no, path)
    return path
