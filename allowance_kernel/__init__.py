"""
Allowance Kernel

A role-gated allowance disbursement registry with:
- Sequential application ids
- Reviewer verification and a signature quorum
- A one-shot claim latch against a custodial pool
- A hash-chained lifecycle event log
"""

__version__ = "0.1.0"
