"""API layer for Research Agent.

Contains:
- controllers/: FastAPI route handlers
"""
