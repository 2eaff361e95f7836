"""Upload batch and line models for persisted channel uploads."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, Float, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSON, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from channel_ingest.database import Base


class UploadBatch(Base):
    """One accepted upload file and its header summary.

    Attributes:
        id: Unique identifier (UUID)
        platform: Marketplace the file came from (amazon, zepto, ...)
        kind: What the file describes (inventory, secondary-sales, purchase-order)
        business_unit: Business unit the upload belongs to
        period_type: daily, range or 2-month
        report_date: Report date of a daily upload
        period_start: First day covered by a range upload
        period_end: Last day covered by a range upload
        filename: Uploaded filename, also stamped on each line
        uploaded_by: Who uploaded the file
        currency: Currency of monetary totals
        total_items: Number of retained lines
        total_quantity: Sum of line quantities
        total_value: Sum of line values
        unique_products: Distinct SKUs/products across lines
        unique_brands: Distinct brands across lines
        extras: JSON blob of vendor-specific header fields
        warning_count: Cells that could not be coerced during the parse
        created_at: When the batch was stored
    """

    __tablename__ = "upload_batches"
    __table_args__ = (
        Index(
            "idx_upload_batches_platform_kind",
            "platform",
            "kind",
        ),
        Index(
            "idx_upload_batches_business_unit",
            "business_unit",
        ),
        Index(
            "idx_upload_batches_report_date",
            "report_date",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    platform: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    business_unit: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    period_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="daily",
    )
    report_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    period_start: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    period_end: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
    )
    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    uploaded_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
    )
    currency: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="INR",
    )
    total_items: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    total_quantity: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0,
    )
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2),
        nullable=False,
        default=0,
    )
    unique_products: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    unique_brands: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    extras: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )
    warning_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        nullable=False,
    )

    lines = relationship(
        "UploadLine",
        back_populates="batch",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<UploadBatch(platform={self.platform!r}, kind={self.kind!r}, "
            f"filename={self.filename!r}, total_items={self.total_items!r})>"
        )


class UploadLine(Base):
    """One normalized line of an upload batch.

    The common columns are queryable; the full vendor-specific line is kept
    in ``data``.

    Attributes:
        id: Unique identifier (UUID)
        batch_id: Foreign key to upload_batches
        line_number: Line number within the upload
        sku: SKU or vendor item code
        product_name: Product name or description
        brand: Brand name, when the vendor reports one
        quantity: Quantity on the line
        total_value: Monetary value of the line
        data: JSON blob of every field of the normalized line
    """

    __tablename__ = "upload_lines"
    __table_args__ = (
        Index(
            "idx_upload_lines_batch",
            "batch_id",
        ),
        Index(
            "idx_upload_lines_sku",
            "sku",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("upload_batches.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    sku: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    product_name: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    brand: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    quantity: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0,
    )
    total_value: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=14, scale=2),
        nullable=True,
    )
    data: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    batch = relationship("UploadBatch", back_populates="lines")

    def __repr__(self) -> str:
        return (
            f"<UploadLine(batch_id={self.batch_id!r}, line_number={self.line_number!r}, "
            f"sku={self.sku!r}, quantity={self.quantity!r})>"
        )
