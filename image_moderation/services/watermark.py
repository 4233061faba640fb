import logging
import shutil

from PIL import Image, ImageDraw, ImageFont

logger = logging.getLogger(__name__)


def watermark_path_for(image_path):
    """Sibling path used for the stamped copy: photo.png -> photo_wm.jpg"""
    base = str(image_path).rsplit('.', 1)[0]
    return f"{base}_wm.jpg"


def add_watermark(image_path, output_path, text='EthioMarket.com', margin=10):
    """
    Stamp text into the bottom-right corner and save as JPEG. When stamping
    fails the original file is copied so the output path always exists.
    """
    try:
        with Image.open(image_path) as img:
            base = img.convert('RGBA')

        overlay = Image.new('RGBA', base.size, (255, 255, 255, 0))
        draw = ImageDraw.Draw(overlay)
        font = ImageFont.load_default()
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = max(base.width - (right - left) - margin, 0)
        y = max(base.height - (bottom - top) - margin, 0)
        draw.text((x + 1, y + 1), text, font=font, fill=(0, 0, 0, 80))
        draw.text((x, y), text, font=font, fill=(255, 255, 255, 180))

        Image.alpha_composite(base, overlay).convert('RGB').save(
            output_path, 'JPEG', quality=85)
    except (OSError, ValueError) as e:
        logger.error(f"Error adding watermark to {image_path}: {str(e)}")
        shutil.copyfile(image_path, output_path)
    return output_path
