"""Shared router for task service endpoints."""

from __future__ import annotations

from fastapi import APIRouter

api_router = APIRouter()
