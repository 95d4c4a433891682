"""
Lounge Registration Service - tournament sign-up for the gaming lounge

Responsibilities:
- Prefill registration from the signed-in profile
- Multi-participant roster editing and validation
- Paystack payment for the selected games
- Sequential enrollment with retry, and per-participant recovery
- Manual (admin) and event registration
"""
