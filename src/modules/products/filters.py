import django_filters

from modules.products.models import Product


class ProductFilter(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    min_stock = django_filters.NumberFilter(
        field_name="stock_quantity", lookup_expr="gte"
    )
    max_stock = django_filters.NumberFilter(
        field_name="stock_quantity", lookup_expr="lte"
    )
    min_price = django_filters.NumberFilter(
        field_name="selling_price", lookup_expr="gte"
    )
    max_price = django_filters.NumberFilter(
        field_name="selling_price", lookup_expr="lte"
    )

    class Meta:
        model = Product
        fields = ["name", "min_stock", "max_stock", "min_price", "max_price"]
