"""Background workers for billing service"""
from .billing_sweep import BillingSweepWorker

__all__ = ["BillingSweepWorker"]
