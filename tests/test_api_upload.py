"""Tests for channel upload API endpoints."""

from collections.abc import AsyncGenerator
from io import BytesIO
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException, status
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from channel_ingest.api.upload import (
    MAX_FILE_SIZE,
    SUPPORTED_EXTENSIONS,
    resolve_parser,
    validate_business_unit,
    validate_content_type,
    validate_file_extension,
    validate_period_type,
)
from channel_ingest.database import get_db
from channel_ingest.main import app
from channel_ingest.services.results import PeriodType
from channel_ingest.services.secondary_sales import parse_zepto_secondary_sales

SALES_CSV = b"SKU,Product Name,Qty,Price\nA1,Widget,5,10.00\n,,0,0\nA2,Gadget,0,0\n"
FORM = {"business_unit": "jivo-wellness", "report_date": "2025-08-05"}


@pytest.fixture
def sync_client() -> TestClient:
    """Create a sync test client for simple tests."""
    return TestClient(app)


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create a mock database session."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
def override_db(mock_db_session: AsyncMock) -> None:
    """Override the database dependency."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield mock_db_session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


class TestValidateFileExtension:
    """Tests for validate_file_extension function."""

    def test_validate_csv_extension(self) -> None:
        """Test validation of .csv extension."""
        assert validate_file_extension("report.csv") == ".csv"

    def test_validate_uppercase_extension(self) -> None:
        """Test validation handles uppercase extensions."""
        assert validate_file_extension("report.XLSX") == ".xlsx"

    def test_invalid_extension_raises_error(self) -> None:
        """Test that invalid extensions raise HTTPException."""
        with pytest.raises(HTTPException) as exc_info:
            validate_file_extension("report.pdf")

        assert exc_info.value.status_code == 400
        assert "Unsupported file type" in str(exc_info.value.detail)

    def test_empty_filename_raises_error(self) -> None:
        """Test that empty filename raises HTTPException."""
        with pytest.raises(HTTPException) as exc_info:
            validate_file_extension("")

        assert exc_info.value.status_code == 400
        assert "Filename is required" in str(exc_info.value.detail)

    def test_dotted_name_uses_last_suffix(self) -> None:
        """Test that only the final suffix of a dotted name counts."""
        assert validate_file_extension("zepto.po.08.2025.xls") == ".xls"

    def test_missing_extension_names_file(self) -> None:
        """Test that a name without an extension is reported by name."""
        with pytest.raises(HTTPException) as exc_info:
            validate_file_extension("report")

        assert "'report'" in str(exc_info.value.detail)


class TestValidateContentType:
    """Tests for validate_content_type function."""

    def test_valid_types(self) -> None:
        """Test that matching content types pass."""
        validate_content_type("text/csv", ".csv")
        validate_content_type("text/plain", ".csv")
        validate_content_type("application/vnd.ms-excel", ".xls")
        validate_content_type(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"
        )

    def test_octet_stream_and_none_allowed(self) -> None:
        """Test that generic or missing content types pass."""
        validate_content_type("application/octet-stream", ".xlsx")
        validate_content_type(None, ".csv")

    def test_parameters_are_ignored(self) -> None:
        """Test that a charset parameter does not fail a CSV upload."""
        validate_content_type("text/csv; charset=utf-8", ".csv")
        validate_content_type("Application/Vnd.MS-Excel", ".xlsx")

    def test_mismatched_content_type_raises_error(self) -> None:
        """Test that mismatched content type raises HTTPException."""
        with pytest.raises(HTTPException) as exc_info:
            validate_content_type("text/csv", ".xlsx")

        assert exc_info.value.status_code == 400
        assert "does not match" in str(exc_info.value.detail)


class TestFormValidators:
    """Tests for business unit, period type and parser lookup."""

    def test_business_unit_normalized(self) -> None:
        """Test that known business units pass case-insensitively."""
        assert validate_business_unit(" Jivo-Mart ") == "jivo-mart"

    def test_unknown_business_unit(self) -> None:
        """Test that an unknown business unit is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            validate_business_unit("acme")

        assert exc_info.value.status_code == 400

    def test_period_type(self) -> None:
        """Test period type parsing and rejection."""
        assert validate_period_type("date-range") == PeriodType.RANGE
        with pytest.raises(HTTPException) as exc_info:
            validate_period_type("weekly")

        assert exc_info.value.status_code == 400

    def test_resolve_parser(self) -> None:
        """Test parser lookup from path segments."""
        assert resolve_parser("secondary-sales", "Zepto") is parse_zepto_secondary_sales

    @pytest.mark.parametrize(
        "kind, platform",
        [("inventory", "city-mall"), ("returns", "amazon"), ("inventory", "dmart")],
    )
    def test_resolve_parser_not_found(self, kind: str, platform: str) -> None:
        """Test that unknown pairs are 404."""
        with pytest.raises(HTTPException) as exc_info:
            resolve_parser(kind, platform)

        assert exc_info.value.status_code == 404


class TestListParsers:
    """Tests for GET /upload/parsers."""

    def test_lists_pairs(self, sync_client: TestClient) -> None:
        """Test that every registered pair is listed."""
        response = sync_client.get("/upload/parsers")

        assert response.status_code == status.HTTP_200_OK
        pairs = response.json()
        assert len(pairs) == 14
        assert {"kind": "inventory", "platform": "blinkit"} in pairs


class TestPreviewEndpoint:
    """Tests for POST /upload/{kind}/{platform}/preview."""

    def test_preview_success(self, sync_client: TestClient) -> None:
        """Test that a preview returns the parsed envelope."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["header"]["total_items"] == 1
        assert data["header"]["total_value"] == 50.0
        assert data["header"]["business_unit"] == "jivo-wellness"
        assert data["header"]["report_date"] == "2025-08-05"
        assert data["lines"][0]["sku"] == "A1"
        assert data["lines"][0]["attachment_path"] == "sales.csv"
        assert data["warnings"] == []

    def test_unknown_pair(self, sync_client: TestClient) -> None:
        """Test that an unregistered kind/platform pair is 404."""
        response = sync_client.post(
            "/upload/inventory/zepto/preview",
            files={"file": ("stock.csv", BytesIO(SALES_CSV), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unknown_business_unit(self, sync_client: TestClient) -> None:
        """Test that an unknown business unit is 400."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")},
            data={"business_unit": "acme"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "business unit" in response.json()["detail"]

    def test_invalid_period_type(self, sync_client: TestClient) -> None:
        """Test that an unknown period type is 400."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")},
            data={**FORM, "period_type": "weekly"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_business_unit(self, sync_client: TestClient) -> None:
        """Test that the business unit form field is required."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")},
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_unsupported_file_type(self, sync_client: TestClient) -> None:
        """Test upload of unsupported file type."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("report.pdf", BytesIO(b"%PDF-1.4"), "application/pdf")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Unsupported file type" in response.json()["detail"]

    def test_empty_file(self, sync_client: TestClient) -> None:
        """Test upload of empty file."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(b""), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "empty" in response.json()["detail"].lower()

    def test_file_too_large(self, sync_client: TestClient) -> None:
        """Test upload of file exceeding size limit."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(b"x" * (MAX_FILE_SIZE + 1)), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "exceeds maximum" in response.json()["detail"].lower()


class TestIngestionErrorResponses:
    """Tests for parse failures rendered by the exception handler."""

    def test_header_only_file(self, sync_client: TestClient) -> None:
        """Test that a header-only file is a 422 empty result."""
        response = sync_client.post(
            "/upload/secondary-sales/amazon/preview",
            files={"file": ("sales.csv", BytesIO(b"SKU,Product Name,Qty,Price\n"), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "EMPTY_RESULT"

    def test_missing_columns(self, sync_client: TestClient) -> None:
        """Test that missing required columns are a 422."""
        response = sync_client.post(
            "/upload/purchase-order/blinkit/preview",
            files={"file": ("po.csv", BytesIO(b"po_number,item_id\nP1,1\n"), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = response.json()
        assert body["error"] == "MISSING_REQUIRED_COLUMNS"
        assert "remaining_quantity" in body["detail"]

    def test_unreadable_workbook(self, sync_client: TestClient) -> None:
        """Test that an undecodable workbook is a 400."""
        response = sync_client.post(
            "/upload/inventory/amazon/preview",
            files={
                "file": (
                    "stock.xlsx",
                    BytesIO(b"PK\x03\x04garbage"),
                    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                )
            },
            data=FORM,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "UNSUPPORTED_FORMAT"


class TestUploadEndpoint:
    """Tests for POST /upload/{kind}/{platform}."""

    def test_upload_stores_batch(
        self, override_db: None, mock_db_session: AsyncMock
    ) -> None:
        """Test that an accepted upload is stored and summarized."""
        client = TestClient(app)
        response = client.post(
            "/upload/secondary-sales/amazon",
            files={"file": ("sales.csv", BytesIO(SALES_CSV), "text/csv")},
            data={**FORM, "uploaded_by": "ops@example.com"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert "upload_id" in data
        assert data["warning_count"] == 0
        assert data["header"]["total_items"] == 1
        assert data["header"]["uploaded_by"] == "ops@example.com"
        assert "1 lines stored" in data["message"]
        mock_db_session.add.assert_called_once()
        mock_db_session.flush.assert_awaited_once()

    def test_blinkit_po_stored_per_po_number(
        self, override_db: None, mock_db_session: AsyncMock
    ) -> None:
        """Test that a multi-PO Blinkit file is stored as one batch per PO."""
        content = (
            b"po_number,item_id,name,remaining_quantity,total_amount\n"
            b"BPO1,101,Jivo Oil,10,1050\n"
            b"BPO2,102,Jivo Ghee,5,1680\n"
        )
        client = TestClient(app)
        response = client.post(
            "/upload/purchase-order/blinkit",
            files={"file": ("po.csv", BytesIO(content), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data["upload_ids"]) == 2
        assert data["upload_id"] == data["upload_ids"][0]
        assert "in 2 batches" in data["message"]
        assert mock_db_session.add.call_count == 2

    def test_failed_parse_stores_nothing(
        self, override_db: None, mock_db_session: AsyncMock
    ) -> None:
        """Test that nothing is added when the parse fails."""
        client = TestClient(app)
        response = client.post(
            "/upload/secondary-sales/amazon",
            files={"file": ("sales.csv", BytesIO(b"SKU,Qty\n"), "text/csv")},
            data=FORM,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        mock_db_session.add.assert_not_called()


class TestSupportedExtensions:
    """Tests for supported file extensions constant."""

    def test_extensions(self) -> None:
        """Test that CSV and both Excel formats are supported."""
        assert SUPPORTED_EXTENSIONS == {".csv", ".xlsx", ".xls"}


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, sync_client: TestClient) -> None:
        """Test the health check endpoint."""
        response = sync_client.get("/health")
        assert response.json() == {"status": "healthy"}
