"""API route handlers."""

from .jobs import router as jobs_router
from .applications import router as applications_router
