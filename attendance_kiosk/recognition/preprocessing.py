"""
Image preprocessing module.

Enhancement pipeline for enrollment photos:
1. Denoising (fastNlMeansDenoisingColored)
2. CLAHE on luminance channel (contrast enhancement)
3. Unsharp mask (sharpening)
"""

import cv2
import numpy as np

from ..config import Config
from ..logging_config import get_logger

logger = get_logger(__name__)


def enhance_photo(image_bgr: np.ndarray, config: Config) -> np.ndarray:
    """
    Enhance a photo before face detection.

    Args:
        image_bgr: Image in BGR format
        config: Service configuration

    Returns:
        Enhanced image, or the input unchanged when preprocessing is
        disabled or fails
    """
    if not config.enable_preprocessing:
        return image_bgr

    try:
        denoised = cv2.fastNlMeansDenoisingColored(
            image_bgr,
            None,
            h=config.denoise_strength,
            hColor=config.denoise_strength,
            templateWindowSize=7,
            searchWindowSize=21
        )

        # CLAHE on luminance only so colours stay intact
        ycrcb = cv2.cvtColor(denoised, cv2.COLOR_BGR2YCrCb)
        y, cr, cb = cv2.split(ycrcb)
        clahe = cv2.createCLAHE(
            clipLimit=config.clahe_clip_limit,
            tileGridSize=(8, 8)
        )
        enhanced = cv2.cvtColor(
            cv2.merge([clahe.apply(y), cr, cb]),
            cv2.COLOR_YCrCb2BGR
        )

        gaussian = cv2.GaussianBlur(enhanced, (0, 0), 2.0)
        return cv2.addWeighted(enhanced, 1.5, gaussian, -0.5, 0)

    except cv2.error as e:
        logger.warning(f'Preprocessing failed, using original photo: {e}')
        return image_bgr
