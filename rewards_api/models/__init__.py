"""Central model registry — import all models so Alembic autodiscover works."""

from rewards_api.database import Base  # noqa: F401

from rewards_api.models.budget import Budget, BudgetItem  # noqa: F401
from rewards_api.models.product import BaseProduct, CompanyProduct  # noqa: F401
from rewards_api.models.replication_log import ReplicationLog  # noqa: F401
