"""
Settlement Kernel - interconnect and roaming settlement core

Deterministic settlement computations over carrier usage:
- Usage rating against partner rate sheets
- Least-cost route selection over carrier pricelists
- Billing cycle aggregation with an explicit lifecycle
- Invoice generation and payment application
- Credit exposure and volume commitment tracking
"""

__version__ = "0.1.0"
