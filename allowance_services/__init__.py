"""Hosting layer: transactional facades over the allowance kernel."""

from allowance_services.disbursement_service import DisbursementService

__all__ = ["DisbursementService"]
