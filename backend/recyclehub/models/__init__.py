from recyclehub.models.daily_price import DailyPrice  # noqa: F401
from recyclehub.models.dropping_point import DroppingPoint  # noqa: F401
from recyclehub.models.pickup_order import OrderCompletion, PickupOrder  # noqa: F401
from recyclehub.models.user import User  # noqa: F401
