"""
HTTP service over the survey core (FastAPI).

    python -m service.server --port 8000
"""
