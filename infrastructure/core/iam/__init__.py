"""IAM helper constructs and utilities for DRACO."""

from . import utils  # noqa: F401
from .consumer_role import ConsumerRoleConstruct
from .producer_role import ProducerRoleConstruct

__all__ = ["utils", "ProducerRoleConstruct", "ConsumerRoleConstruct"]
