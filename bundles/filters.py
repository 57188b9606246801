import django_filters
from django.db.models import Q

from .models import Bundle


class BundleFilter(django_filters.FilterSet):
    """Admin list filters for bundles."""
    search = django_filters.CharFilter(method='filter_search')
    type = django_filters.ChoiceFilter(field_name='bundle_type', choices=Bundle.BundleType.choices)
    bundle_type = django_filters.ChoiceFilter(choices=Bundle.BundleType.choices)
    is_active = django_filters.BooleanFilter()
    show_on_homepage = django_filters.BooleanFilter()
    homepage_position = django_filters.ChoiceFilter(choices=Bundle.HomepagePosition.choices)
    starts_after = django_filters.IsoDateTimeFilter(field_name='starts_at', lookup_expr='gte')
    ends_before = django_filters.IsoDateTimeFilter(field_name='ends_at', lookup_expr='lte')
    available_only = django_filters.BooleanFilter(method='filter_available_only')

    class Meta:
        model = Bundle
        fields = []

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(sku__icontains=value))

    def filter_available_only(self, queryset, name, value):
        if value:
            return queryset.available()
        return queryset


class PublicBundleFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    type = django_filters.ChoiceFilter(field_name='bundle_type', choices=Bundle.BundleType.choices)

    class Meta:
        model = Bundle
        fields = []

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) | Q(short_description__icontains=value) | Q(description__icontains=value)
        )
