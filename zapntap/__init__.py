"""
ZapNTap - Source Package

A small ledger for electric-vehicle home charging sessions:
meter readings in, energy and cost out, with photo OCR to
pre-fill readings and simple monthly analytics.

DESIGN PRINCIPLES:
1. OCR suggests → Human enters → Calculator verifies
2. Fail early, fail visibly
3. Nothing changes in memory unless storage accepted it
4. Every mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ZapNTap Team"
