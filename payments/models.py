from django.db import models
from django.utils import timezone


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class Order(models.Model):
    order_id = models.CharField(max_length=64, unique=True, db_index=True)  # correlation key shared with EPN
    user_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)

    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    order_status = models.CharField(max_length=32, default="pending")

    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    billing_address = models.TextField()
    shipping_address = models.TextField(blank=True, null=True)
    order_items = models.JSONField(default=list, blank=True)

    email = models.EmailField()
    phone_number = models.CharField(max_length=32)

    requires_ffl = models.BooleanField(default=False)
    ffl_dealer_info = models.JSONField(blank=True, null=True)

    payment_method = models.CharField(max_length=32, default="credit_card")
    shipping_method = models.CharField(max_length=32, default="standard")

    # written only by postback reconciliation
    payment_processor_id = models.CharField(max_length=128, blank=True, null=True)
    payment_processor_response = models.JSONField(blank=True, null=True)
    response_message = models.CharField(max_length=255, blank=True, default="")

    order_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-order_date"]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def __str__(self):
        return f"{self.order_id} ({self.payment_status})"
