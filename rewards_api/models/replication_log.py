from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, JSON, Index, desc
from sqlalchemy.orm import Mapped, mapped_column

from rewards_api.database import Base, new_id


class ReplicationLog(Base):
    """Append-only audit record of one replication invocation."""

    __tablename__ = "replication_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    budget_id: Mapped[Optional[str]] = mapped_column(String(36))
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    base_product_id: Mapped[Optional[str]] = mapped_column(String(36))
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    errors: Mapped[Optional[list]] = mapped_column(JSON)
    summary: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_replication_logs_budget", "budget_id"),
        Index("idx_replication_logs_company", "company_id"),
        Index("idx_replication_logs_created", desc("created_at")),
    )
