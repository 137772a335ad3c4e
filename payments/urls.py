from django.urls import path
from . import views
app_name = "payments"
urlpatterns = [
    path("payments/process", views.process_payment_view, name="process_payment"),
    # EPN postback URL configured on the merchant account
    path("payments/postback", views.payment_postback_view, name="payment_postback"),
    path("payments/postback/", views.payment_postback_view),
    path("orders/<str:order_id>/status", views.order_status_view, name="order_status"),
    path("orders/<str:order_id>/link", views.link_order_view, name="link_order"),
    path("users/<str:user_id>/orders", views.user_orders_view, name="user_orders"),
]
