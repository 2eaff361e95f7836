"""Tests for SQLAlchemy models."""

import uuid
from datetime import date

from channel_ingest.models import UploadBatch, UploadLine


class TestUploadBatchModel:
    """Tests for the UploadBatch model."""

    def test_batch_attributes(self) -> None:
        """Test that UploadBatch has all required attributes."""
        batch = UploadBatch(
            platform="zepto",
            kind="secondary-sales",
            business_unit="jivo-mart",
            period_type="daily",
            report_date=date(2025, 8, 1),
            filename="zepto.csv",
        )
        assert batch.platform == "zepto"
        assert batch.kind == "secondary-sales"
        assert batch.report_date == date(2025, 8, 1)

    def test_batch_default_id(self) -> None:
        """Test that UploadBatch generates a UUID by default."""
        batch = UploadBatch(platform="amazon", kind="inventory", business_unit="x", filename="f")
        # id will be None until persisted, but default is set
        assert batch.id is None or isinstance(batch.id, uuid.UUID)

    def test_batch_columns(self) -> None:
        """Test that the header summary columns exist."""
        columns = {c.name for c in UploadBatch.__table__.columns}
        required = {
            "id",
            "platform",
            "kind",
            "business_unit",
            "period_type",
            "report_date",
            "period_start",
            "period_end",
            "filename",
            "uploaded_by",
            "currency",
            "total_items",
            "total_quantity",
            "total_value",
            "unique_products",
            "unique_brands",
            "extras",
            "warning_count",
            "created_at",
        }
        assert required.issubset(columns)

    def test_batch_repr(self) -> None:
        """Test UploadBatch string representation."""
        batch = UploadBatch(
            platform="blinkit", kind="inventory", business_unit="x", filename="stock.csv"
        )
        repr_str = repr(batch)
        assert "blinkit" in repr_str
        assert "stock.csv" in repr_str

    def test_batch_tablename(self) -> None:
        """Test that UploadBatch has correct table name."""
        assert UploadBatch.__tablename__ == "upload_batches"


class TestUploadLineModel:
    """Tests for the UploadLine model."""

    def test_line_attributes(self) -> None:
        """Test that UploadLine has all required attributes."""
        line = UploadLine(
            line_number=1,
            sku="A1",
            product_name="Widget",
            quantity=5,
            total_value=50,
            data={"sku": "A1"},
        )
        assert line.sku == "A1"
        assert line.data == {"sku": "A1"}

    def test_line_foreign_key(self) -> None:
        """Test that lines reference their batch with cascade delete."""
        fk = next(iter(UploadLine.__table__.c.batch_id.foreign_keys))
        assert fk.target_fullname == "upload_batches.id"
        assert fk.ondelete == "CASCADE"

    def test_batch_relationship(self) -> None:
        """Test that lines attach to a batch in memory."""
        batch = UploadBatch(platform="zepto", kind="purchase-order", business_unit="x", filename="f")
        batch.lines = [UploadLine(line_number=1, sku="A1", quantity=1)]
        assert batch.lines[0].batch is batch

    def test_line_repr(self) -> None:
        """Test UploadLine string representation."""
        line = UploadLine(line_number=3, sku="A1", quantity=2)
        assert "A1" in repr(line)

    def test_line_tablename(self) -> None:
        """Test that UploadLine has correct table name."""
        assert UploadLine.__tablename__ == "upload_lines"
