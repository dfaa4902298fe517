"""
Donation Service Clients

External system adapters used by the donation service.
"""

from .razorpay_client import RazorpayClient, compute_signature, to_subunits

__all__ = ["RazorpayClient", "compute_signature", "to_subunits"]
