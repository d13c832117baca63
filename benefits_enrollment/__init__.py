"""
Benefits enrollment core.

- rating: table-driven census quoting (rating areas, base rates, tiers)
- workflow: enrollment steps, tenant authorization, progress and audit
- api: FastAPI surface over both

Switching store/cache implementations happens in ONE place (benefits_enrollment/api/main.py).
"""
