"""Bank statement batch extraction and reconciliation.

Unlocks encrypted statement PDFs, extracts balances through an external
document extraction API and matches each statement to a known bank account.
"""

__version__ = "1.0.0"
__author__ = "Statement Processing Team"
