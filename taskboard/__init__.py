"""
Task and project management backend.

Users own projects and projects own tasks. Each user is stored as one
document, and the package exposes it over a small FastAPI service.
"""
