import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(db_index=True, max_length=64, unique=True)),
                ('user_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('payment_status', models.CharField(
                    choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed')],
                    db_index=True,
                    default='pending',
                    max_length=16,
                )),
                ('order_status', models.CharField(default='pending', max_length=32)),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('billing_address', models.TextField()),
                ('shipping_address', models.TextField(blank=True, null=True)),
                ('order_items', models.JSONField(blank=True, default=list)),
                ('email', models.EmailField(max_length=254)),
                ('phone_number', models.CharField(max_length=32)),
                ('requires_ffl', models.BooleanField(default=False)),
                ('ffl_dealer_info', models.JSONField(blank=True, null=True)),
                ('payment_method', models.CharField(default='credit_card', max_length=32)),
                ('shipping_method', models.CharField(default='standard', max_length=32)),
                ('payment_processor_id', models.CharField(blank=True, max_length=128, null=True)),
                ('payment_processor_response', models.JSONField(blank=True, null=True)),
                ('response_message', models.CharField(blank=True, default='', max_length=255)),
                ('order_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-order_date'],
            },
        ),
    ]
