"""Chip image analysis."""
from .analyzer import ChipAnalysis, ChipAnalyzer, chip_analyzer, detect_chips, validate_image

__all__ = ["ChipAnalysis", "ChipAnalyzer", "chip_analyzer", "detect_chips", "validate_image"]
