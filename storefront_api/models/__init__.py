"""
Database Models

Every tenant-owned table carries tenant_id; handlers always filter on it.
"""
from storefront_api.models.tenant import Tenant, BusinessProfile
from storefront_api.models.user import User, UserRole
from storefront_api.models.category import TenantCategory
from storefront_api.models.inventory import InventoryItem
from storefront_api.models.directory import DirectoryListing, DirectoryListingCategory
from storefront_api.models.order import Order, OrderItem, OrderStatusHistory
from storefront_api.models.payment import Payment
from storefront_api.models.feed_job import FeedPushJob
from storefront_api.models.webhook_event import StripeWebhookEvent
from storefront_api.models.security_alert import SecurityAlert
from storefront_api.models.behavior import BehaviorEvent
from storefront_api.models.featured_product import FeaturedProduct
from storefront_api.models.review import StoreReview, ReviewHelpfulVote, StoreRatingSummary

__all__ = [
    "Tenant",
    "BusinessProfile",
    "User",
    "UserRole",
    "TenantCategory",
    "InventoryItem",
    "DirectoryListing",
    "DirectoryListingCategory",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
    "FeedPushJob",
    "StripeWebhookEvent",
    "SecurityAlert",
    "BehaviorEvent",
    "FeaturedProduct",
    "StoreReview",
    "ReviewHelpfulVote",
    "StoreRatingSummary",
]
