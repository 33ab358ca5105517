# scanlens/ocr_backends/tesseract_backend.py
from __future__ import annotations

from typing import List, Tuple, Dict, Any, Optional
import os
import platform
import shutil
import time
from pathlib import Path

import numpy as np
from PIL import Image
import pytesseract as pt

from .base import BaseOCREngine

# Latin letters, digits, common punctuation and the space character
DEFAULT_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789.,!?()-:;/ "
)

# 4 = assume a single column of text of variable sizes
DEFAULT_PSM = 4


def resolve_tesseract_cmd() -> Optional[str]:
    # 1) explicit env override
    cmd = os.getenv("TESSERACT_CMD")
    if cmd and Path(cmd).exists():
        return cmd

    # 2) look on PATH
    cmd = shutil.which("tesseract")
    if cmd:
        return cmd

    # 3) common fallbacks by OS
    system = platform.system()
    if system == "Windows":
        candidates = [
            r"C:\Program Files\Tesseract-OCR\tesseract.exe",
            r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
        ]
    elif system == "Darwin":
        candidates = ["/opt/homebrew/bin/tesseract", "/usr/local/bin/tesseract"]
    else:
        candidates = ["/usr/bin/tesseract", "/usr/local/bin/tesseract", "/snap/bin/tesseract"]

    for p in candidates:
        if Path(p).exists():
            return p
    return None


def build_tesseract_config(
    oem: int = 3,
    psm: int = DEFAULT_PSM,
    preserve_interword_spaces: bool = True,
    whitelist: Optional[str] = DEFAULT_WHITELIST,
    extra_config: str = "",
) -> str:
    parts = [f"--oem {int(oem)}", f"--psm {int(psm)}"]
    if preserve_interword_spaces:
        parts.append("-c preserve_interword_spaces=1")
    if whitelist:
        # quoted, the whitelist contains a space
        parts.append(f'-c "tessedit_char_whitelist={whitelist}"')
    if extra_config:
        parts.append(extra_config.strip())
    return " ".join(parts)


class TesseractOCREngine(BaseOCREngine):
    """
    Pytesseract-based backend.

    Kwargs supported (all optional):
      - languages / lang: list[str] or str of tesseract codes (default "eng")
      - tesseract_cmd: full path to the tesseract binary
      - oem: 0..3 (default 3 = LSTM)
      - psm: page segmentation mode (default 4 = single column)
      - preserve_interword_spaces: bool (default True)
      - whitelist: allowed characters, empty string to disable
      - extra_config: str of extra flags (appended to config string)
    """

    def __init__(self, **kwargs: Dict[str, Any]):
        k = dict(kwargs)  # don't mutate caller's dict

        tesseract_cmd = k.pop("tesseract_cmd", None) or resolve_tesseract_cmd()
        if tesseract_cmd:
            pt.pytesseract.tesseract_cmd = str(tesseract_cmd)

        langs = k.pop("languages", None) or k.pop("lang", None) or ["eng"]
        if isinstance(langs, str):
            langs = [langs]
        self.lang = "+".join(sorted(set(str(l).lower() for l in langs)))

        self._config = build_tesseract_config(
            oem=k.pop("oem", 3),
            psm=k.pop("psm", DEFAULT_PSM),
            preserve_interword_spaces=bool(k.pop("preserve_interword_spaces", True)),
            whitelist=k.pop("whitelist", DEFAULT_WHITELIST),
            extra_config=str(k.pop("extra_config", "")),
        )

    def _to_pil(self, img) -> Image.Image:
        if isinstance(img, Image.Image):
            return img
        if isinstance(img, np.ndarray):
            if img.ndim == 2:
                return Image.fromarray(img)
            return Image.fromarray(img[..., :3])
        return Image.open(img).convert("RGB")

    def read_batch(self, images: List[np.ndarray]) -> Tuple[List[str], float]:
        start = time.perf_counter()
        texts: List[str] = []
        for im in images:
            txt = pt.image_to_string(self._to_pil(im), lang=self.lang, config=self._config)
            texts.append(txt.strip())
        return texts, time.perf_counter() - start
