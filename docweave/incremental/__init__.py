"""Fingerprinting and incremental planning of generation units."""

from .fingerprint import Fingerprinter
from .hashing import FileHasher
from .planner import Action, IncrementalPlanner, Plan

__all__ = ["Action", "FileHasher", "Fingerprinter", "IncrementalPlanner", "Plan"]
