"""Single entry point dispatching QuickBooks files to their importer."""

from datetime import date
from pathlib import Path
from typing import Any, Optional, Union

from dealerbooks.database.base import Database
from dealerbooks.domain.document_import import DocumentImportService
from dealerbooks.domain.errors import UploadValidationError
from dealerbooks.domain.json_import import JsonImportService
from dealerbooks.domain.ledger_import import LedgerImportService
from dealerbooks.domain.master_import import IMPORT_AS_CHOICES, MasterDataImportService

# Import type name -> (service attribute, method name)
IMPORT_TYPES = {
    "chart-of-accounts": ("master", "import_chart_of_accounts"),
    "customers": ("master", "import_customers"),
    "vendors": ("master", "import_vendors"),
    "items": ("master", "import_items"),
    "invoices": ("documents", "import_invoices"),
    "estimates": ("documents", "import_estimates"),
    "bills": ("documents", "import_bills"),
    "vendor-transactions": ("ledger", "import_vendor_transactions"),
    "general-ledger": ("ledger", "import_general_ledger"),
    "payments": ("ledger", "import_payments"),
    "journal": ("ledger", "import_journal"),
}


class QuickBooksImportService:
    """Facade over the individual QuickBooks importers."""

    def __init__(self, db: Database, today: Optional[date] = None):
        """Initialize import services.

        Args:
            db: Database instance
            today: Date used for overdue checks and undated rows (defaults to today)
        """
        self.db = db
        self.master = MasterDataImportService(db, today)
        self.documents = DocumentImportService(db, today)
        self.ledger = LedgerImportService(db, today)
        self.json = JsonImportService(db, today)

    def import_file(
        self,
        import_type: str,
        file_path: Union[str, Path],
        import_as: Optional[str] = None,
        dry_run: bool = False,
    ) -> dict[str, Any]:
        """Import one QuickBooks CSV export.

        Args:
            import_type: One of IMPORT_TYPES
            file_path: Path to the CSV file
            import_as: parts, services or both (items only, default both)
            dry_run: Roll back instead of committing

        Returns:
            Dict with message, per-importer counters and a list of row errors

        Raises:
            UploadValidationError: If import_type or import_as is invalid
            ImportFailedError: If the import aborted and was rolled back
        """
        if import_type not in IMPORT_TYPES:
            raise UploadValidationError(
                {"import_type": [f"Unknown import type '{import_type}'. Choose from: {', '.join(IMPORT_TYPES)}"]}
            )

        service_name, method_name = IMPORT_TYPES[import_type]
        method = getattr(getattr(self, service_name), method_name)

        if import_type == "items":
            import_as = import_as or "both"
            if import_as not in IMPORT_AS_CHOICES:
                raise UploadValidationError(
                    {"import_as": [f"The import as field must be one of: {', '.join(IMPORT_AS_CHOICES)}."]}
                )
            return method(file_path, import_as=import_as, dry_run=dry_run)
        return method(file_path, dry_run=dry_run)

    def restore_json(
        self, file_path: Union[str, Path], table_name: Optional[str] = None, dry_run: bool = False
    ) -> dict[str, Any]:
        """Load a JSON backup (see JsonImportService.import_json)."""
        return self.json.import_json(file_path, table_name=table_name, dry_run=dry_run)
