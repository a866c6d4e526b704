"""Invoicing domain - Zoho invoice issuance and paid-only delivery"""

from .orchestrator import InvoiceOrchestrator, build_invoice_orchestrator

__all__ = ["InvoiceOrchestrator", "build_invoice_orchestrator"]
