"""Client library: reconciliation engine and a connected canvas session."""
from .reconcile import PaintIntent, ReconciliationEngine
from .session import CanvasClient

__all__ = ['CanvasClient', 'PaintIntent', 'ReconciliationEngine']
