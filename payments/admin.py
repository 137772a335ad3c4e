from django.contrib import admin
from .models import Order

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "payment_status", "total_amount", "email", "requires_ffl", "order_date")
    search_fields = ("order_id", "payment_processor_id", "email", "phone_number", "user_id")
    list_filter = ("payment_status", "order_status", "requires_ffl", "order_date")
    readonly_fields = ("created_at", "payment_processor_id", "payment_processor_response", "response_message")
