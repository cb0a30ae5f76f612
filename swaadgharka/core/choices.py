from __future__ import annotations

MENU_CATEGORIES = (
    "appetizers",
    "main-course",
    "rice-biryani",
    "bread-roti",
    "dal-curry",
    "vegetables",
    "snacks",
    "sweets-desserts",
    "beverages",
    "combo-meals",
    "regional-specials",
    "chef-special",
)

CUISINES = (
    "north-indian",
    "south-indian",
    "gujarati",
    "punjabi",
    "bengali",
    "maharashtrian",
    "rajasthani",
    "kerala",
    "tamil",
    "hyderabadi",
    "mughlai",
    "street-food",
    "chinese",
    "continental",
)

MENU_TAGS = (
    "vegetarian",
    "vegan",
    "jain",
    "halal",
    "gluten-free",
    "dairy-free",
    "spicy",
    "mild",
    "sweet",
    "tangy",
    "crispy",
    "healthy",
    "comfort-food",
    "traditional",
    "fusion",
    "home-style",
    "restaurant-style",
    "quick-bite",
    "family-pack",
    "single-serve",
)

SPICE_LEVELS = ("mild", "medium", "spicy", "extra-spicy")
SERVING_SIZES = ("1 person", "2-3 people", "4-5 people", "family pack")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MENU_SORT_KEYS = ("price", "rating", "name", "createdAt", "popular")

USER_ROLES = ("customer", "admin")

ORDER_TYPES = ("delivery", "pickup")

ORDER_STATUSES = (
    "placed",
    "confirmed",
    "preparing",
    "ready",
    "out-for-delivery",
    "delivered",
    "picked-up",
    "cancelled",
    "refunded",
)
TERMINAL_STATUSES = frozenset({"delivered", "picked-up", "cancelled", "refunded"})
FULFILLED_STATUSES = frozenset({"delivered", "picked-up"})

PAYMENT_METHODS = ("card", "upi", "cod", "wallet")
PAYMENT_STATUSES = ("pending", "processing", "completed", "failed", "refunded")
PAYMENT_GATEWAYS = ("stripe", "razorpay", "upi-simulator")

CANCELLATION_REASONS = (
    "customer-request",
    "restaurant-unavailable",
    "item-unavailable",
    "payment-failed",
    "delivery-issues",
    "other",
)
CUSTOMER_CANCELLATION_REASONS = frozenset({"customer-request", "item-unavailable", "other"})

MAX_LINE_QUANTITY = 10
MAX_ITEM_INSTRUCTIONS = 200
MAX_ORDER_INSTRUCTIONS = 500
MAX_REVIEW_LENGTH = 500

PINCODE_PATTERN = r"^[1-9][0-9]{5}$"
PHONE_PATTERN = r"^(\+91[\-\s]?)?[0]?(91)?[789]\d{9}$"
TIME_OF_DAY_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
# ASCII classes only: pydantic-core caps compiled regex size and Unicode \w blows past it
UPI_ID_PATTERN = r"^[A-Za-z0-9._-]{2,256}@[A-Za-z]{2,64}$"

DIETARY_PREFERENCES = ("vegetarian", "vegan", "jain", "halal", "gluten-free", "dairy-free")
USER_STATUS_FILTERS = ("active", "inactive")
