#
# src/unity_explorer/discovery/__init__.py
#
"""
Test discovery: pattern engine, source scanner and tree loader.
"""
from .loader import TestLoader
from .patterns import CompiledPattern, InvalidPattern, PatternEngine, compile_pattern
from .scanner import ScannedCase, iter_test_cases, scan_source

__all__ = [
    "CompiledPattern",
    "InvalidPattern",
    "PatternEngine",
    "ScannedCase",
    "TestLoader",
    "compile_pattern",
    "iter_test_cases",
    "scan_source",
]

# 🔼⚙️
