from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'sku', 'price', 'stock_status', 'is_active', 'updated_at')
    list_filter = ('stock_status', 'is_active')
    search_fields = ('name', 'sku')
    readonly_fields = ('created_at', 'updated_at')
