# scanlens/exceptions.py
class ScanLensError(Exception):
    """Base exception for the scanlens library."""
    pass

class FileProcessingError(ScanLensError):
    """Raised when a single file fails to process."""
    pass

class ConversionError(FileProcessingError):
    """Raised when a PDF cannot be rasterized into page images."""
    pass

class OCRError(FileProcessingError):
    """Raised when an OCR job for a page fails."""
    pass

class AnalysisError(ScanLensError):
    """Raised when a chunk task exhausts its retries without a usable response."""
    pass

class LLMBackendError(ScanLensError):
    """Raised by LLM backends on transport, quota or rate-limit failures."""
    pass

class FormatError(ScanLensError):
    """Raised when a progress event payload is malformed."""
    pass
