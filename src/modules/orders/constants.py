"""Order domain constants.

Status and payment-method choices, plus order-number generation limits.
Every status is reachable from every other one: staff may move an order
back and forth (e.g. ``livré`` back to ``en cours``) without restriction.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    IN_PROGRESS = "en cours", "En cours"
    READY = "prêt", "Prêt"
    DELIVERED = "livré", "Livré"


class PaymentMethod(models.TextChoices):
    CARD = "carte", "Carte"
    CASH = "espèces", "Espèces"
    CHEQUE = "chèque", "Chèque"
    TRANSFER = "virement", "Virement"


DEFAULT_STATUS = OrderStatus.IN_PROGRESS
DEFAULT_PAYMENT_METHOD = PaymentMethod.CARD

ORDER_NUMBER_PREFIX = "CMD"
ORDER_NUMBER_MAX_RETRIES = 5
