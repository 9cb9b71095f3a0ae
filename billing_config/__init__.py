"""
Billing configuration.

    from billing_config import load_invoicing_config
    config = load_invoicing_config("settings/invoicing.yaml")
"""

from billing_config.loader import compute_checksum, load_invoicing_config

__all__ = ["load_invoicing_config", "compute_checksum"]
