from io import BytesIO

import PyPDF2

from citecast.core.logging import get_logger

logger = get_logger(__name__)


def extract_pdf_text(data: bytes) -> str:
    """Text of every page, pages separated by blank lines."""
    reader = PyPDF2.PdfReader(BytesIO(data))

    pages = []
    for page_num, page in enumerate(reader.pages):
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text.strip())
        else:
            logger.debug("pdf_page_empty", page=page_num + 1)

    logger.info("pdf_text_extracted", page_count=len(reader.pages), pages_with_text=len(pages))
    return "\n\n".join(pages)
