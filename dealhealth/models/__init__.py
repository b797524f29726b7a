"""
Models Package
SQLAlchemy ORM models for the application.
"""

from dealhealth.models.deal import Deal
from dealhealth.models.deal_stage import DealStage
from dealhealth.models.note import Note, NoteEntityType

__all__ = [
    "Deal",
    "DealStage",
    "Note",
    "NoteEntityType",
]
