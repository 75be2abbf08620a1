"""
Revenue Kernel

Foundation layer for the billing and revenue aggregation engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Immutable domain records and the billing snapshot
"""

__version__ = "0.1.0"
