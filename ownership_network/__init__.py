"""Ownership network builder: company/partner graph discovery around a CNPJ."""

__version__ = "0.1.0"
