import io
import re
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

# A4 landscape at 150 dpi
WIDTH, HEIGHT = 1754, 1240

NAVY = (27, 51, 127)
GOLD = (212, 175, 55)
SLATE = (52, 73, 94)

FONT_DIR = "/usr/share/fonts/truetype/dejavu"


def safe_filename(title: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", title or "Course")


def _load_fonts():
    try:
        return (
            ImageFont.truetype(f"{FONT_DIR}/DejaVuSerif-Bold.ttf", 72),
            ImageFont.truetype(f"{FONT_DIR}/DejaVuSerif.ttf", 38),
            ImageFont.truetype(f"{FONT_DIR}/DejaVuSerif-Bold.ttf", 60),
            ImageFont.truetype(f"{FONT_DIR}/DejaVuSans.ttf", 28),
        )
    except OSError:
        default = ImageFont.load_default()
        return default, default, default, default


def render_certificate_pdf(
    student_name: str,
    course_title: str,
    issued_on: datetime,
    certificate_id: str,
    instructor_name: str = "Instructor"
) -> bytes:
    """Draw the completion certificate and return it as a one-page PDF"""
    img = Image.new("RGB", (WIDTH, HEIGHT), color="white")
    draw = ImageDraw.Draw(img)

    draw.rectangle([40, 40, WIDTH - 40, HEIGHT - 40], outline=GOLD, width=8)
    draw.rectangle([64, 64, WIDTH - 64, HEIGHT - 64], outline=NAVY, width=3)

    title_font, text_font, name_font, small_font = _load_fonts()

    def centered(text, font, y, fill):
        bbox = draw.textbbox((0, 0), text, font=font)
        draw.text(((WIDTH - (bbox[2] - bbox[0])) / 2, y), text, fill=fill, font=font)

    centered("Certificate of Completion", title_font, 170, NAVY)
    centered("This is to certify that", text_font, 340, SLATE)
    centered(student_name or "Student", name_font, 420, GOLD)
    centered("has successfully completed the course", text_font, 560, SLATE)
    centered(course_title or "Course", name_font, 640, NAVY)
    centered(f"Issued on: {issued_on.strftime('%B %d, %Y')}", small_font, 820, SLATE)
    centered(f"Certificate ID: {certificate_id}", small_font, 870, SLATE)

    draw.line([(WIDTH // 2 - 220, 1020), (WIDTH // 2 + 220, 1020)], fill=SLATE, width=2)
    centered(instructor_name, small_font, 1035, SLATE)

    buf = io.BytesIO()
    img.save(buf, format="PDF", resolution=150.0)
    buf.seek(0)
    return buf.getvalue()
