from swaadgharka.models.user import User
from swaadgharka.models.menu_item import MenuItem, MenuItemTag
from swaadgharka.models.menu_item_review import MenuItemReview
from swaadgharka.models.order import Order
from swaadgharka.models.order_item import OrderItem
from swaadgharka.models.order_status_history import OrderStatusHistory
from swaadgharka.models.order_sequence import OrderSequence
from swaadgharka.models.admin_audit_log import AdminAuditLog
