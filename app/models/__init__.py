from app.models.user import User
from app.models.product import Product
from app.models.design_file import DesignFile
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.order_event import OrderEvent
from app.models.order_design_file import OrderDesignFile
from app.models.discount_code import DiscountCode
from app.models.discount_usage import DiscountUsage
from app.models.payment import Payment
from app.models.notifications import Notification

# add ALL models here
