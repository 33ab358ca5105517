# src/scanlens/processors.py
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageFilter, ImageOps

from .ocr_worker import recognize

logger = logging.getLogger("scanlens")


# --- 1. Image preprocessing ---
def preprocess_image(image: Union[Image.Image, str, Path], threshold: int = 128) -> np.ndarray:
    """
    Normalize a page image for OCR: greyscale, contrast stretch, sharpen,
    then binarize at a fixed level. Returns a uint8 array holding only 0 and 255.

    Decode errors propagate to the caller.
    """
    if isinstance(image, (str, Path)):
        with Image.open(image) as im:
            im.load()
            return preprocess_image(im, threshold)

    grey = ImageOps.grayscale(image)
    normalized = ImageOps.autocontrast(grey)
    sharpened = normalized.filter(ImageFilter.SHARPEN)
    binary = sharpened.point(lambda p: 255 if p >= threshold else 0)
    return np.asarray(binary, dtype=np.uint8)


# --- 2. Pool worker ---
def worker_ocr_page(page_task: dict) -> dict:
    """
    Preprocess one page image and run it through this worker's OCR engine.
    Returns the task dict with:
      - 'text' (str) on success
      - 'error' (str) on failure
      - 'duration_seconds' (float)
    Expected keys in page_task:
      image_path, slot, threshold
    """
    start = time.perf_counter()
    image_path = page_task["image_path"]
    try:
        array = preprocess_image(image_path, int(page_task.get("threshold", 128)))
        page_task["text"] = recognize(array)
        return page_task
    except Exception as e:
        logger.debug("OCR failed on %s", image_path, exc_info=True)
        page_task["error"] = f"OCR failed on page {page_task.get('slot', 0) + 1}, {e}"
        return page_task
    finally:
        page_task["duration_seconds"] = time.perf_counter() - start
