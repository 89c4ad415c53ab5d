import uuid
from pathlib import Path

import aiofiles
from pdfminer.high_level import extract_text as pdf_extract_text
from PIL import Image
import pytesseract

IMAGE_SUFFIXES = [".png", ".jpg", ".jpeg", ".tiff", ".bmp"]


# -------------------------------
# Utility: Extract text from files
# -------------------------------
def extract_text_from_file(path: Path) -> str:
    suf = path.suffix.lower()
    try:
        if suf == ".pdf":
            return pdf_extract_text(str(path))
        elif suf in IMAGE_SUFFIXES:
            img = Image.open(path)
            return pytesseract.image_to_string(img)
        elif suf in [".txt", ".md"]:
            return path.read_text(encoding="utf-8")
        else:
            return ""
    except Exception:
        # unreadable attachments are kept, just without text
        return ""


def is_image(filename: str) -> bool:
    return Path(filename).suffix.lower() in IMAGE_SUFFIXES


async def save_upload(upload_dir: Path, filename: str, content: bytes) -> Path:
    upload_dir.mkdir(parents=True, exist_ok=True)
    dest = upload_dir / f"{uuid.uuid4().hex}_{Path(filename).name}"
    async with aiofiles.open(dest, "wb") as out:
        await out.write(content)
    return dest
