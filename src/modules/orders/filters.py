import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    user = django_filters.NumberFilter(field_name="user_id")
    provider = django_filters.NumberFilter(field_name="provider_location__provider_id")
    start_date = django_filters.DateFilter(field_name="order_date", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="order_date", lookup_expr="date__lte")

    class Meta:
        model = Order
        fields = ["status", "user", "provider", "start_date", "end_date"]
