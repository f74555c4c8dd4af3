from comercial.models.customer import Customer, CustomerCategoryDiscount
from comercial.models.vendor import Vendor
from comercial.models.sale import Sale, SaleInstallment, SaleOrigin, SaleStatus
from comercial.models.commission import CommissionConfig, CommissionRecord, CommissionTransition
from comercial.models.payment_batch import PaymentBatch
from comercial.models.job_run import JobRun

__all__ = [
    "Customer",
    "CustomerCategoryDiscount",
    "Vendor",
    "Sale",
    "SaleInstallment",
    "SaleOrigin",
    "SaleStatus",
    "CommissionConfig",
    "CommissionRecord",
    "CommissionTransition",
    "PaymentBatch",
    "JobRun",
]
