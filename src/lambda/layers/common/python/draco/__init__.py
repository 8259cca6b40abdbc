"""DRACO: cross-account snapshot replication to a disaster-recovery account.

Shared layer package used by the producer, consumer and wait4copy Lambdas.
"""

__version__ = "1.0.0"
