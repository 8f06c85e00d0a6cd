"""
Import every model so Base.metadata is complete (create_all, migrations, tests).
"""
from storefront.models.audit_log import AuditLog
from storefront.models.category import Category
from storefront.models.credit_product import CreditProduct
from storefront.models.cron_job_log import CronJobLog
from storefront.models.license_key import LicenseKey
from storefront.models.order import Order, OrderItem
from storefront.models.order_capture import OrderCapture
from storefront.models.plan import Plan
from storefront.models.product import Product
from storefront.models.shipping_address import ShippingAddress
from storefront.models.subscription import Subscription
from storefront.models.user_credits import UserCredits

__all__ = [
    "AuditLog",
    "Category",
    "CreditProduct",
    "CronJobLog",
    "LicenseKey",
    "Order",
    "OrderItem",
    "OrderCapture",
    "Plan",
    "Product",
    "ShippingAddress",
    "Subscription",
    "UserCredits",
]
