"""Pydantic Schemas — response models for the inspection endpoints.

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
