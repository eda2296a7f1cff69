"""
Jobs package - background scheduling
"""
from jobs.scheduler import IndexingScheduler

__all__ = ['IndexingScheduler']
