# construction_ledger/database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from construction_ledger.database.repositories import (
        # Parties & projects
        CompaniesRepo, CompaniesDomainError,
        ProjectsRepo, ProjectsDomainError,
        CategoriesRepo, CategoriesDomainError,
        # Ledger
        TransactionsRepo, TransactionFilters, TransactionsDomainError,
        PaymentAllocationsRepo, OverAllocationError, AllocationsDomainError,
        # Stock
        MaterialsRepo, MaterialsDomainError, stock_delta,
        # Trash & reporting
        TrashRepo, TrashType, AnalyticsRepo,
        # Shared
        OpResult, immediate_tx,
    )
"""

# ---------------- Shared -------------------
from .tx_helpers import OpResult, immediate_tx

# ---------------- Companies ----------------
from .companies_repo import (
    CompaniesRepo,
    DomainError as CompaniesDomainError,
)

# ---------------- Projects -----------------
from .projects_repo import (
    ProjectsRepo,
    DomainError as ProjectsDomainError,
)

# ---------------- Categories ---------------
from .categories_repo import (
    CategoriesRepo,
    DomainError as CategoriesDomainError,
)

# ---------------- Ledger -------------------
from .transactions_repo import (
    TransactionsRepo,
    TransactionFilters,
    DomainError as TransactionsDomainError,
)
from .payment_allocations_repo import (
    PaymentAllocationsRepo,
    OverAllocationError,
    DomainError as AllocationsDomainError,
)

# ---------------- Stock --------------------
from .materials_repo import (
    MaterialsRepo,
    stock_delta,
    DomainError as MaterialsDomainError,
)

# ---------------- Trash & reporting --------
from .trash_repo import TrashRepo, TrashType
from .analytics_repo import AnalyticsRepo, cumulative_cash_flow

__all__ = [
    "OpResult", "immediate_tx",
    "CompaniesRepo", "CompaniesDomainError",
    "ProjectsRepo", "ProjectsDomainError",
    "CategoriesRepo", "CategoriesDomainError",
    "TransactionsRepo", "TransactionFilters", "TransactionsDomainError",
    "PaymentAllocationsRepo", "OverAllocationError", "AllocationsDomainError",
    "MaterialsRepo", "stock_delta", "MaterialsDomainError",
    "TrashRepo", "TrashType",
    "AnalyticsRepo", "cumulative_cash_flow",
]
