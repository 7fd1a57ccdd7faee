"""
Mod synchronization between the Steam Workshop cache and a DayZ server.
"""

from .engine import ReconciliationEngine
from .models import ModRecord, SyncResult
from .store import ModRecordStore

__all__ = ['ReconciliationEngine', 'ModRecord', 'ModRecordStore', 'SyncResult']
