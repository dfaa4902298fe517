"""
Donation Service

Donation and campaign funding ledger microservice providing:
- Campaign management with a running collected-amount total
- Online donations through the Razorpay payment gateway
- Offline donations recorded by staff (cash, bank, UPI, cheque, in kind)
- Deletion with credit reversal and periodic ledger reconciliation
- Campaign summaries and a public recent-donations feed

Port: 8260
"""

__version__ = "1.0.0"
__service__ = "donation_service"
