"""
Image Processing Module
Decoding, orientation and enhancement of submitted page images
"""
import io
import cv2
import numpy as np
from typing import Optional
import logging

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> Optional[np.ndarray]:
    """
    Decode image bytes into a BGR array, honouring EXIF orientation.

    Args:
        data: Encoded image bytes

    Returns:
        BGR image array or None if decoding fails
    """
    try:
        with Image.open(io.BytesIO(data)) as pil:
            pil = ImageOps.exif_transpose(pil).convert("RGB")
            rgb = np.asarray(pil)
    except Exception as e:
        logger.warning(f"Failed to decode image: {e}")
        return None
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def encode_png(img: np.ndarray) -> bytes:
    """
    Encode an image array as PNG.

    Raises:
        ValueError: If OpenCV cannot encode the array
    """
    ok, buffer = cv2.imencode(".png", img)
    if not ok:
        raise ValueError("Failed to encode image as PNG")
    return buffer.tobytes()


def adjust_tone(
    img: np.ndarray,
    gamma: float = 1.1,
    brightness: float = 1.05,
    saturation: float = 1.1
) -> np.ndarray:
    """
    Lift midtones, brightness and saturation of a BGR image.

    Args:
        img: BGR image
        gamma: Gamma correction factor (>1 brightens midtones)
        brightness: Multiplier on the value channel
        saturation: Multiplier on the saturation channel

    Returns:
        Adjusted BGR image
    """
    inv_gamma = 1.0 / gamma
    table = np.array([
        ((i / 255.0) ** inv_gamma) * 255 for i in range(256)
    ]).astype(np.uint8)
    corrected = cv2.LUT(img, table)

    hsv = cv2.cvtColor(corrected, cv2.COLOR_BGR2HSV).astype(np.float32)
    hsv[..., 1] *= saturation
    hsv[..., 2] *= brightness
    hsv = np.clip(hsv, 0, 255).astype(np.uint8)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


def denoise_enhance_sharpen(img: np.ndarray) -> np.ndarray:
    """
    Apply denoising, CLAHE contrast enhancement, and light sharpening.

    Contrast is applied on the lightness channel so ink colour survives
    for the OCR step.

    Args:
        img: Input image (grayscale or BGR)

    Returns:
        Processed image with the same channel count as the input
    """
    if len(img.shape) == 2:
        denoised = cv2.fastNlMeansDenoising(
            img, None, h=7, templateWindowSize=7, searchWindowSize=21
        )
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        enhanced = clahe.apply(denoised)
    else:
        denoised = cv2.fastNlMeansDenoisingColored(
            img, None, h=7, hColor=7, templateWindowSize=7, searchWindowSize=21
        )
        lab = cv2.cvtColor(denoised, cv2.COLOR_BGR2LAB)
        lightness, a, b = cv2.split(lab)
        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        lab = cv2.merge((clahe.apply(lightness), a, b))
        enhanced = cv2.cvtColor(lab, cv2.COLOR_LAB2BGR)

    # Unsharp mask
    blur = cv2.GaussianBlur(enhanced, (3, 3), 0)
    sharpened = cv2.addWeighted(enhanced, 1.5, blur, -0.5, 0)
    sharpened = np.clip(sharpened, 0, 255).astype(np.uint8)

    return sharpened


def enhance_page(img: np.ndarray) -> np.ndarray:
    """Full deterministic enhancement applied to every page before OCR"""
    return denoise_enhance_sharpen(adjust_tone(img))
