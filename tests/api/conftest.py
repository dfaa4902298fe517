"""
API Test Layer Configuration

HTTP contract tests for the donation service.
- FastAPI TestClient against the real application and routes
- The service is wired to in-memory stores through dependency overrides
- The lifespan (database, NATS) is not started

Usage:
    pytest tests/api -v
"""

import os
import sys

# Add project root
sys.path.insert(
    0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)
