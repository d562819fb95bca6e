"""Order domain constants.

Defines the order status choices.  Any status can follow any other; the
order only records the transition (see ``Order.set_status``).
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ON_HOLD = "on-hold", "On hold"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


ORDER_NUMBER_MAX_RETRIES = 5
