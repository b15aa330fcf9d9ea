from io import BytesIO

from docx import Document as DocxDocument


def extract_docx_text(data: bytes) -> str:
    """Raw paragraph text of a Word document, one paragraph per block."""
    document = DocxDocument(BytesIO(data))
    paragraphs = [p.text.strip() for p in document.paragraphs if p.text.strip()]
    return "\n\n".join(paragraphs)
