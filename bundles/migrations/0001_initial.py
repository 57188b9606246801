from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Bundle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('slug', models.SlugField(blank=True, help_text='Auto-generated from name', max_length=255, unique=True)),
                ('sku', models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ('sku_auto_generated', models.BooleanField(default=False, help_text='True when the SKU was generated, not entered')),
                ('description', models.TextField(blank=True)),
                ('short_description', models.CharField(blank=True, max_length=500)),
                ('bundle_type', models.CharField(choices=[('fixed', 'Fixed'), ('configurable', 'Configurable')], default='fixed', max_length=20)),
                ('discount_type', models.CharField(choices=[('fixed_price', 'Fixed Bundle Price'), ('percentage', 'Percentage Off Items Total')], default='percentage', max_length=20)),
                ('discount_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Flat bundle price (fixed_price) or percentage off the items total (percentage)', max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('badge_label', models.CharField(blank=True, help_text="e.g. 'Best Value', 'Limited Time'", max_length=50)),
                ('badge_color', models.CharField(default='gold', max_length=20)),
                ('cta_text', models.CharField(default='Add Bundle to Cart', max_length=100)),
                ('show_countdown', models.BooleanField(default=False)),
                ('show_savings', models.BooleanField(default=True)),
                ('meta_title', models.CharField(blank=True, max_length=255)),
                ('meta_description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('starts_at', models.DateTimeField(blank=True, null=True)),
                ('ends_at', models.DateTimeField(blank=True, null=True)),
                ('stock_limit', models.PositiveIntegerField(blank=True, help_text='Empty = unlimited', null=True)),
                ('stock_sold', models.PositiveIntegerField(default=0)),
                ('cart_display', models.CharField(choices=[('single_item', 'Single Item'), ('grouped', 'Grouped'), ('individual', 'Individual')], default='grouped', max_length=20)),
                ('allow_coupon_stacking', models.BooleanField(default=False)),
                ('show_on_homepage', models.BooleanField(default=False)),
                ('homepage_position', models.CharField(blank=True, choices=[('carousel', 'Carousel'), ('grid', 'Grid'), ('banner', 'Banner')], max_length=20, null=True)),
                ('display_order', models.IntegerField(default=0)),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('add_to_cart_count', models.PositiveIntegerField(default=0)),
                ('purchase_count', models.PositiveIntegerField(default=0)),
                ('revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_bundles', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['display_order', 'created_at', 'id'],
                'indexes': [
                    models.Index(fields=['is_active'], name='bundles_is_active_idx'),
                    models.Index(fields=['show_on_homepage', 'homepage_position'], name='bundles_homepage_idx'),
                    models.Index(fields=['starts_at', 'ends_at'], name='bundles_window_idx'),
                    models.Index(fields=['display_order'], name='bundles_display_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_id', models.PositiveBigIntegerField(db_index=True)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('price_override', models.DecimalField(blank=True, decimal_places=2, help_text='Optional price that supersedes the catalog price inside this bundle', max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('sort_order', models.IntegerField(default=0)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='bundles.bundle')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'constraints': [
                    models.UniqueConstraint(fields=('bundle', 'product_id'), name='unique_bundle_item_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleSlot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('slot_order', models.IntegerField(default=0)),
                ('is_required', models.BooleanField(default=True)),
                ('min_selections', models.PositiveIntegerField(default=1)),
                ('max_selections', models.PositiveIntegerField(default=1)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='slots', to='bundles.bundle')),
            ],
            options={
                'ordering': ['slot_order', 'id'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('min_selections__lte', models.F('max_selections'))), name='bundle_slot_min_lte_max'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleSlotProduct',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_id', models.PositiveBigIntegerField(db_index=True)),
                ('price_override', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('slot', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to='bundles.bundleslot')),
            ],
            options={
                'ordering': ['id'],
                'constraints': [
                    models.UniqueConstraint(fields=('slot', 'product_id'), name='unique_bundle_slot_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleImage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('url', models.CharField(max_length=500)),
                ('alt_text', models.CharField(blank=True, max_length=255)),
                ('is_primary', models.BooleanField(default=False)),
                ('sort_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='images', to='bundles.bundle')),
            ],
            options={
                'ordering': ['sort_order', 'id'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_primary', True)), fields=('bundle',), name='unique_primary_bundle_image'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BundleEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('view', 'View'), ('add_to_cart', 'Add to Cart'), ('purchase', 'Purchase')], max_length=20)),
                ('event_key', models.CharField(help_text='Caller-supplied key preventing double counting on retries', max_length=255, unique=True)),
                ('units', models.PositiveIntegerField(default=0)),
                ('revenue', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='bundles.bundle')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
