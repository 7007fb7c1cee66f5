"""
Listing import orchestration.

Modules:
    orchestrator - ImportOrchestrator (staged import, preview, jobs)
    results      - ImportRequest, ImportResult, ImportPreview, ImportStatus
    bootstrap    - build_orchestrator() from environment and config
"""

from .bootstrap import build_orchestrator
from .orchestrator import ImportOrchestrator
from .results import ImportPreview, ImportRequest, ImportResult, ImportStatus

__all__ = [
    'ImportOrchestrator',
    'ImportRequest',
    'ImportResult',
    'ImportPreview',
    'ImportStatus',
    'build_orchestrator',
]
