"""
OCR provider adapters.
"""

from .base import HTTPOCRProvider, OCRProvider
from .gpt_vision import GPTVisionProvider
from .mistral import MistralOCRProvider
from .ocr_space import OCRSpaceProvider

__all__ = [
    "OCRProvider",
    "HTTPOCRProvider",
    "GPTVisionProvider",
    "MistralOCRProvider",
    "OCRSpaceProvider",
]
